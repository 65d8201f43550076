# common/codec.py
"""
Format-compatibility step that runs before validation.

Stored values have drifted over time:
  - "object":     the client handed back an already-parsed dict (oldest records)
  - "envelope":   a JSON string holding an object
  - "bare_array": a JSON string (or parsed value) holding only the component list
Anything unreadable is "invalid"; callers treat it like a missing key.
"""
from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, Optional

log = logging.getLogger("registry-hub.codec")

Encoding = Literal["absent", "object", "envelope", "bare_array", "invalid"]


@dataclass(frozen=True)
class Decoded:
    encoding: Encoding
    payload: Any = None

    @property
    def usable(self) -> bool:
        return self.encoding in ("object", "envelope", "bare_array")


def decode_value(raw: Any, key: Optional[str] = None) -> Decoded:
    if raw is None:
        return Decoded("absent")
    if isinstance(raw, dict):
        return Decoded("object", raw)
    if isinstance(raw, list):
        return Decoded("bare_array", raw)
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    if not isinstance(raw, str):
        log.warning("Unexpected stored value type %s at %s", type(raw).__name__, key)
        return Decoded("invalid")
    if not raw.strip():
        return Decoded("absent")
    try:
        parsed = json.loads(raw)
    except ValueError as e:
        log.warning("Failed to parse stored JSON at %s: %s", key, e)
        return Decoded("invalid")
    if isinstance(parsed, dict):
        return Decoded("envelope", parsed)
    if isinstance(parsed, list):
        return Decoded("bare_array", parsed)
    log.warning("Stored JSON at %s is neither object nor array", key)
    return Decoded("invalid")


def encode_value(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False)
