# common/directory.py
from __future__ import annotations
import logging
import time
from typing import List

from common.kv import KeyValueStore
from common.models import TenantSummary
from common.settings import Settings
from common.validators import DEFAULT_ICON, decode_tenant

log = logging.getLogger("registry-hub.directory")


async def list_tenants(kv: KeyValueStore, cfg: Settings) -> List[TenantSummary]:
    """
    Every tenant for the admin overview, newest first.
    Records in any stored format are accepted; unreadable ones still get a row with defaults.
    """
    prefix = f"{cfg.tenant_key_prefix}:"
    keys = await kv.keys(prefix)
    if not keys:
        return []

    values = await kv.mget(keys)
    now_ms = int(time.time() * 1000)
    out: List[TenantSummary] = []
    for key, raw in zip(keys, values):
        tenant = key[len(prefix):]
        rec = decode_tenant(raw, tenant, key=key)
        if rec is None:
            log.warning("Listing %s with defaults; stored record is unreadable", key)
        out.append(TenantSummary(
            tenant           = tenant,
            icon             = (rec.icon if rec else None) or DEFAULT_ICON,
            created_at       = (rec.created_at if rec else 0) or now_ms,
            components_count = len(rec.registry) if rec else 0,
            name             = (rec.name if rec else None) or tenant,
            description      = (rec.description if rec else None) or f"{tenant} registry",
        ))

    out.sort(key=lambda s: (-s.created_at, s.tenant))
    return out
