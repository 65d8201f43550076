# common/errors.py
from __future__ import annotations
from typing import Literal, Optional
from pydantic import BaseModel

ErrorKind = Literal["validation", "conflict", "not_found", "upstream"]


class RegistryError(Exception):
    """Base for failures a store operation reports back to its caller."""

    kind: ErrorKind = "validation"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_result(self) -> "ActionResult":
        return ActionResult(ok=False, kind=self.kind, error=self.message)


class InputValidationError(RegistryError):
    kind: ErrorKind = "validation"


class ConflictError(RegistryError):
    kind: ErrorKind = "conflict"


class TenantNotFound(RegistryError):
    kind: ErrorKind = "not_found"


class UpstreamError(RegistryError):
    """
    Remote registry fetch failed. Keeps what went wrong (status code vs. timeout)
    so the message shown to the operator can tell them apart.
    """

    kind: ErrorKind = "upstream"

    def __init__(self, url: str, detail: str = "", status_code: Optional[int] = None, timed_out: bool = False):
        self.url = url
        self.status_code = status_code
        self.timed_out = timed_out
        if timed_out:
            message = f"Timed out fetching {url}"
        elif status_code is not None:
            message = f"Fetching {url} failed with HTTP {status_code}"
        else:
            message = f"Fetching {url} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ActionResult(BaseModel):
    ok: bool
    kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    redirect: Optional[str] = None  # set by tenant creation only
