import json
import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from common.codec import decode_value
from common.errors import InputValidationError
from common.models import ComponentRecord, TenantRecord, dedupe_entries

log = logging.getLogger("registry-hub.validators")

ID_STRIP_RE = re.compile(r"[^a-z0-9-]")
ICON_MAX_LEN = 10
DEFAULT_ICON = "❓"

# Emoji / pictograph blocks; newer emoji may be unassigned in older unicodedata tables
PICTOGRAPH_RANGES = (
    (0x2300, 0x23FF),    # misc technical (⌚ ⏰)
    (0x2600, 0x27BF),    # misc symbols, dingbats
    (0x2B00, 0x2BFF),    # arrows / stars (⭐)
    (0x1F000, 0x1FAFF),  # mahjong .. symbols & pictographs extended-A
)
EXTRA_PICTOGRAPHS = {0x00A9, 0x00AE, 0x203C, 0x2049, 0x2122, 0x2139, 0x3030, 0x303D, 0x3297, 0x3299}


def sanitize_id(value: str) -> str:
    """Lowercase and drop everything outside [a-z0-9-]."""
    return ID_STRIP_RE.sub("", (value or "").lower())


def _is_pictograph(ch: str) -> bool:
    cp = ord(ch)
    if cp in EXTRA_PICTOGRAPHS:
        return True
    if any(lo <= cp <= hi for lo, hi in PICTOGRAPH_RANGES):
        return True
    return cp >= 0x2100 and unicodedata.category(ch) == "So"


def is_valid_icon(value: str) -> bool:
    if not isinstance(value, str) or not (1 <= len(value) <= ICON_MAX_LEN):
        return False
    return any(_is_pictograph(ch) for ch in value)


def _format_errors(prefix: str, exc: ValidationError) -> List[str]:
    errs: List[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        where = f"{prefix}.{loc}" if loc else prefix
        errs.append(f"{where}: {err.get('msg')}")
    return errs


def validate_component(data: Any, label: str = "component") -> ComponentRecord:
    if not isinstance(data, dict) or not data:
        raise InputValidationError(f"{label} must be a non-empty object")
    try:
        return ComponentRecord.model_validate(data)
    except ValidationError as e:
        raise InputValidationError("; ".join(_format_errors(label, e))) from e


def validate_registry_items(items: Any) -> List[ComponentRecord]:
    """
    Structural check of a component list supplied by an operator.
    Nameless, empty and duplicate entries are dropped (first wins); anything
    else that is the wrong shape is an error for the whole list.
    """
    if not isinstance(items, list):
        raise InputValidationError("Please provide a valid shadcn registry JSON format (expected an array)")
    errs: List[str] = []
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            errs.append(f"registry[{idx}]: expected an object")
        elif "name" in item and item["name"] is not None and not isinstance(item["name"], str):
            errs.append(f"registry[{idx}].name: expected a string")
    if errs:
        raise InputValidationError("; ".join(errs))
    out: List[ComponentRecord] = []
    for item in dedupe_entries(items):
        try:
            out.append(ComponentRecord.model_validate(item))
        except ValidationError as e:
            errs.extend(_format_errors(f"registry[{item.get('name')}]", e))
    if errs:
        raise InputValidationError("; ".join(errs))
    return out


def parse_registry_json(text: str) -> List[ComponentRecord]:
    try:
        items = json.loads(text)
    except (TypeError, ValueError) as e:
        raise InputValidationError("Failed to parse registry JSON. Please check the format.") from e
    return validate_registry_items(items)


# ---------- Stored records (read path) ----------

def _has_name(item: Dict[str, Any]) -> bool:
    name = item.get("name")
    return name is not None and bool(str(name).strip())


def _readable_components(items: Any, key: Optional[str]) -> List[Dict[str, Any]]:
    """Keep only entries that validate; a single bad entry must not hide the tenant."""
    kept: List[Dict[str, Any]] = []
    for item in items if isinstance(items, list) else []:
        if not isinstance(item, dict) or not _has_name(item):
            continue
        try:
            ComponentRecord.model_validate(item)
        except ValidationError as e:
            log.warning("Dropping unreadable component %r in %s: %s", item.get("name"), key, e.errors()[:1])
            continue
        kept.append(item)
    # first readable copy of a name wins
    return dedupe_entries(kept)


def decode_tenant(raw: Any, tenant_id: str, key: Optional[str] = None) -> Optional[TenantRecord]:
    decoded = decode_value(raw, key)
    if not decoded.usable:
        return None

    if decoded.encoding == "bare_array":
        data: Dict[str, Any] = {"icon": DEFAULT_ICON, "createdAt": 0, "registry": decoded.payload}
    else:
        data = dict(decoded.payload)
        # registry.json-style envelope: {"name": ..., "items": [...]}
        if "registry" not in data and isinstance(data.get("items"), list):
            data["registry"] = data.pop("items")
        if "icon" not in data and "emoji" not in data:
            data["icon"] = DEFAULT_ICON
    if not data.get("name"):
        data["name"] = tenant_id
    if not data.get("description"):
        data["description"] = f"{tenant_id} registry"
    data["registry"] = _readable_components(data.get("registry"), key)

    try:
        return TenantRecord.model_validate(data)
    except ValidationError as e:
        log.warning("Stored tenant record at %s failed validation: %s", key, e.errors()[:1])
        return None


def decode_component(raw: Any, key: Optional[str] = None) -> Optional[ComponentRecord]:
    decoded = decode_value(raw, key)
    if decoded.encoding not in ("object", "envelope"):
        return None
    try:
        return ComponentRecord.model_validate(decoded.payload)
    except ValidationError as e:
        log.warning("Stored component at %s failed validation: %s", key, e.errors()[:1])
        return None
