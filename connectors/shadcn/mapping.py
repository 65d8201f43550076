from __future__ import annotations
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urlsplit, urlunsplit
from common.errors import InputValidationError

DEFAULT_STYLE = "default"


def extract_items(doc: Any) -> List[Any]:
    """A remote registry is either a bare array or a registry.json envelope with "items"."""
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict) and isinstance(doc.get("items"), list):
        return doc["items"]
    raise InputValidationError(
        'Registry URL did not return a registry (expected an array or an object with "items")'
    )


def registry_base_url(url: str) -> str:
    """https://x.dev/r/registry.json -> https://x.dev/r ; query and fragment dropped."""
    parts = urlsplit(url)
    path = parts.path
    last = path.rsplit("/", 1)[-1]
    if last.endswith(".json"):
        path = path[: -len(last)]
    return urlunsplit((parts.scheme, parts.netloc, path.rstrip("/"), "", ""))


def pick_style(listing: Any) -> Optional[str]:
    """Prefer the style named "default", else the first listed one."""
    if isinstance(listing, dict):
        listing = listing.get("styles") or listing.get("items")
    if not isinstance(listing, list):
        return None
    names: List[str] = []
    for s in listing:
        name = s.get("name") if isinstance(s, dict) else s
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    if not names:
        return None
    return DEFAULT_STYLE if DEFAULT_STYLE in names else names[0]


def styles_index_url(base: str) -> str:
    return f"{base}/styles/index.json"


def style_component_url(base: str, style: str, name: str) -> str:
    return f"{base}/styles/{quote(style, safe='')}/{quote(name, safe='')}.json"


def component_url(base: str, name: str) -> str:
    return f"{base}/{quote(name, safe='')}"


def merge_component(original: Dict[str, Any], doc: Dict[str, Any]) -> Dict[str, Any]:
    # the listing decides the name; a fetched document can't rename an entry
    merged = {**original, **doc}
    merged["name"] = original["name"]
    return merged
