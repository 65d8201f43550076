# connectors/shadcn/ingest.py
from __future__ import annotations
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from common.errors import UpstreamError
from common.models import ComponentRecord
from common.settings import Settings
from common.validators import validate_registry_items
from connectors.shadcn.client import fetch_json
from connectors.shadcn.mapping import (
    component_url,
    extract_items,
    merge_component,
    pick_style,
    registry_base_url,
    style_component_url,
    styles_index_url,
)

log = logging.getLogger("registry-hub.import")

UrlFor = Callable[[str], str]


# ------------- helpers ----------------
async def _fetch_one(
    cli: httpx.AsyncClient,
    entry: Dict[str, Any],
    url: str,
    timeout: float,
    sem: Optional[asyncio.Semaphore],
) -> Tuple[Dict[str, Any], bool]:
    """
    Returns (entry, enriched). Any failure is contained here: the original
    entry comes back unchanged so one bad component never sinks the import.
    """
    try:
        if sem is not None:
            async with sem:
                doc = await fetch_json(cli, url, timeout)
        else:
            doc = await fetch_json(cli, url, timeout)
    except UpstreamError as e:
        log.warning("Enrichment skipped for %s: %s", entry["name"], e.message)
        return entry, False

    if not isinstance(doc, dict):
        log.warning("Enrichment skipped for %s: %s is not a JSON object", entry["name"], url)
        return entry, False

    merged = merge_component(entry, doc)
    try:
        ComponentRecord.model_validate(merged)
    except ValidationError as e:
        log.warning("Enrichment skipped for %s: fetched document is malformed (%s)", entry["name"], e.errors()[:1])
        return entry, False
    return merged, True


async def _enrich(
    cli: httpx.AsyncClient,
    entries: List[Dict[str, Any]],
    url_for: UrlFor,
    cfg: Settings,
    sem: Optional[asyncio.Semaphore],
) -> Tuple[List[Dict[str, Any]], int]:
    results = await asyncio.gather(
        *(_fetch_one(cli, e, url_for(e["name"]), cfg.component_fetch_timeout, sem) for e in entries)
    )
    hits = sum(1 for _, ok in results if ok)
    return [entry for entry, _ in results], hits


async def _enrich_from_styles(
    cli: httpx.AsyncClient,
    base: str,
    entries: List[Dict[str, Any]],
    cfg: Settings,
    sem: Optional[asyncio.Semaphore],
) -> Optional[List[Dict[str, Any]]]:
    """Styles convention; None means it produced nothing and the caller should fall back."""
    try:
        listing = await fetch_json(cli, styles_index_url(base), cfg.component_fetch_timeout)
    except UpstreamError as e:
        log.info("No styles listing at %s: %s", base, e.message)
        return None

    style = pick_style(listing)
    if not style:
        log.info("Styles listing at %s is empty", base)
        return None

    results, hits = await _enrich(cli, entries, lambda n: style_component_url(base, style, n), cfg, sem)
    if hits == 0:
        log.info("Style %r at %s returned no component documents", style, base)
        return None
    log.info("Enriched %d/%d components from style %r", hits, len(entries), style)
    return results


# ------------- main import ----------------
async def import_registry(
    url: str,
    cfg: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[ComponentRecord]:
    """
    Fetch a remote registry and enrich each component with its full document.

    1) GET the registry (REGISTRY_FETCH_TIMEOUT). Failure here aborts the import.
    2) Styles convention: <base>/styles/index.json, choose "default" (or the first style),
       then one <base>/styles/<style>/<name>.json per component.
    3) If step 2 yields nothing: one <base>/<name> per component.

    Component fetches run concurrently with COMPONENT_FETCH_TIMEOUT each; a failed
    one keeps the entry as listed in the registry.
    """
    async with httpx.AsyncClient(transport=transport, follow_redirects=True) as cli:
        doc = await fetch_json(cli, url, cfg.registry_fetch_timeout)
        listed = validate_registry_items(extract_items(doc))
        if not listed:
            return []

        entries = [c.to_kv() for c in listed]
        base = registry_base_url(url)
        sem = asyncio.Semaphore(cfg.import_concurrency) if cfg.import_concurrency else None

        enriched = await _enrich_from_styles(cli, base, entries, cfg, sem)
        if enriched is None:
            enriched, hits = await _enrich(cli, entries, lambda n: component_url(base, n), cfg, sem)
            log.info("Enriched %d/%d components from %s/<name>", hits, len(entries), base)

    return [ComponentRecord.model_validate(e) for e in enriched]

