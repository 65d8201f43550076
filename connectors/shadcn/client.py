# connectors/shadcn/client.py
from __future__ import annotations
import asyncio
import logging
from typing import Any
import httpx
from common.errors import UpstreamError

log = logging.getLogger("registry-hub.fetch")

TIMEOUT = 10  # seconds


def _is_json(content_type: str) -> bool:
    return content_type.split(";")[0].strip().lower() == "application/json"


async def fetch_json(cli: httpx.AsyncClient, url: str, timeout: float = TIMEOUT) -> Any:
    """
    GET a JSON document. No retries: timeouts, non-2xx, non-JSON content types
    and unparsable bodies all raise UpstreamError.
    """
    log.debug("GET %s (timeout=%ss)", url, timeout)
    try:
        # httpx timeouts are per phase; wait_for bounds the whole request
        r = await asyncio.wait_for(
            cli.get(url, headers={"Accept": "application/json"}, timeout=timeout),
            timeout,
        )
    except (httpx.TimeoutException, asyncio.TimeoutError) as e:
        raise UpstreamError(url, timed_out=True) from e
    except httpx.HTTPError as e:
        raise UpstreamError(url, detail=str(e) or type(e).__name__) from e

    if not r.is_success:
        raise UpstreamError(url, status_code=r.status_code, detail=r.reason_phrase)

    content_type = r.headers.get("content-type", "")
    if not _is_json(content_type):
        raise UpstreamError(url, detail=f"expected Content-Type application/json, got {content_type or 'none'}")

    try:
        return r.json()
    except ValueError as e:
        raise UpstreamError(url, detail="response body is not valid JSON") from e
