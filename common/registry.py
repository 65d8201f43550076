# common/registry.py
"""
Tenant registry store.

Two overlapping views of the same data live in the key-value store:

  <tenant-prefix>:<id>                aggregate record (metadata + full component list)
  <component-prefix>:<id>:<name>      one record per component, for direct lookups

Writes are plain sequential sets; the backend has no transactions. Order is fixed so
that a crash between steps leaves a state the read path already copes with:
  - tenant creation:   aggregate first, then per-component records
  - component update:  per-component record first, then aggregate
Single-component reads prefer the per-component record and fall back to the aggregate,
so any skew is fixed by the next successful write.

Existence checks (tenant name taken, component name taken) are check-then-act.
Two concurrent requests for the same name can both pass; the later write wins.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from common.codec import encode_value
from common.directory import list_tenants
from common.errors import (
    ActionResult,
    ConflictError,
    InputValidationError,
    RegistryError,
    TenantNotFound,
)
from common.kv import KeyValueStore
from common.models import ComponentRecord, TenantRecord, TenantSummary
from common.settings import Settings
from common.validators import (
    decode_component,
    decode_tenant,
    is_valid_icon,
    parse_registry_json,
    sanitize_id,
    validate_component,
)
from connectors.shadcn.ingest import import_registry

log = logging.getLogger("registry-hub.registry")

Revalidate = Callable[[str], None]

INVALID_ID_MSG = "Registry name can only have lowercase letters, numbers, and hyphens. Please try again."
INVALID_ICON_MSG = "Please enter a valid emoji (maximum 10 characters)"


def _now_ms() -> int:
    return int(time.time() * 1000)


class TenantRegistry:
    def __init__(
        self,
        kv: KeyValueStore,
        cfg: Settings,
        revalidate: Optional[Revalidate] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.kv = kv
        self.settings = cfg
        self._revalidate = revalidate
        self._transport = transport  # remote registry fetches; tests swap in a MockTransport

    # ---------- keys ----------
    def tenant_key(self, tenant_id: str) -> str:
        return f"{self.settings.tenant_key_prefix}:{tenant_id}"

    def component_prefix(self, tenant_id: str) -> str:
        return f"{self.settings.component_key_prefix}:{tenant_id}:"

    def component_key(self, tenant_id: str, name: str) -> str:
        return f"{self.component_prefix(tenant_id)}{name}"

    # ---------- reads ----------
    async def get_tenant(self, tenant_id: str) -> Optional[TenantRecord]:
        tid = sanitize_id(tenant_id)
        if not tid:
            return None
        key = self.tenant_key(tid)
        return decode_tenant(await self.kv.get(key), tid, key=key)

    async def get_component(self, tenant_id: str, name: str) -> Optional[ComponentRecord]:
        tid = sanitize_id(tenant_id)
        if not tid or not name:
            return None
        key = self.component_key(tid, name)
        comp = decode_component(await self.kv.get(key), key=key)
        if comp is not None:
            return comp
        # records created before per-component keys existed only live in the aggregate
        tenant = await self.get_tenant(tid)
        return tenant.find(name) if tenant else None

    async def check_component_exists(self, tenant_id: str, name: str) -> bool:
        tid = sanitize_id(tenant_id)
        if not tid or not name:
            return False
        return await self.kv.get(self.component_key(tid, name)) is not None

    async def list_tenants(self) -> List[TenantSummary]:
        return await list_tenants(self.kv, self.settings)

    # ---------- writes ----------
    async def _put_tenant(self, tenant_id: str, record: TenantRecord) -> None:
        await self.kv.set(self.tenant_key(tenant_id), encode_value(record.to_kv()))

    async def _put_component(self, tenant_id: str, comp: ComponentRecord) -> None:
        await self.kv.set(self.component_key(tenant_id, comp.name), encode_value(comp.to_kv()))

    def _touch(self, *paths: str) -> None:
        # cache invalidation is fire-and-forget; it never fails a mutation
        if self._revalidate is None:
            return
        for path in paths:
            try:
                self._revalidate(path)
            except Exception as e:
                log.warning("revalidate %s failed: %s", path, e)

    def _check_new_tenant_fields(self, raw_id: Any, icon: Any, source: Any, source_label: str) -> None:
        if not raw_id or not icon or not source or not str(source).strip():
            raise InputValidationError(f"Registry name, icon, and {source_label} are required")
        if not is_valid_icon(icon):
            raise InputValidationError(INVALID_ICON_MSG)

    def _check_tenant_id(self, raw_id: str) -> str:
        tid = sanitize_id(raw_id)
        if tid != raw_id:
            raise InputValidationError(INVALID_ID_MSG)
        return tid

    async def _ensure_tenant_free(self, tid: str) -> None:
        if await self.kv.get(self.tenant_key(tid)) is not None:
            raise ConflictError("This registry name is already taken")

    async def _store_new_tenant(
        self,
        tid: str,
        icon: str,
        components: List[ComponentRecord],
        name: Optional[str],
        description: Optional[str],
    ) -> ActionResult:
        record = TenantRecord(
            icon=icon,
            created_at=_now_ms(),
            registry=components,
            name=name or tid,
            description=description or f"{tid} registry",
        )
        # 1) aggregate: enough on its own for every read path
        await self._put_tenant(tid, record)
        # 2) per-component records; if we die here reads fall back to the aggregate
        for comp in record.registry:
            await self._put_component(tid, comp)

        log.info("Created tenant %s with %d components", tid, len(record.registry))
        self._touch("/admin")
        return ActionResult(ok=True, redirect=self.settings.tenant_url(tid))

    async def create_tenant(
        self,
        raw_id: str,
        icon: str,
        registry_json: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ActionResult:
        """
        Create a tenant from an inline registry JSON array.
        Every check runs before the first write; on failure nothing is stored.
        """
        try:
            self._check_new_tenant_fields(raw_id, icon, registry_json, "registry JSON")
            components = parse_registry_json(registry_json)
            tid = self._check_tenant_id(raw_id)
            await self._ensure_tenant_free(tid)
        except RegistryError as e:
            log.info("create_tenant %r rejected: %s", raw_id, e.message)
            return e.to_result()
        return await self._store_new_tenant(tid, icon, components, name, description)

    async def create_tenant_from_url(
        self,
        raw_id: str,
        icon: str,
        url: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ActionResult:
        """
        Create a tenant from a remote registry. Only the top-level fetch can fail the
        creation; components whose detail fetch fails are stored as listed.
        """
        try:
            self._check_new_tenant_fields(raw_id, icon, url, "registry URL")
            url = url.strip()
            if not url.startswith(("http://", "https://")):
                raise InputValidationError("Registry URL must start with http:// or https://")
            tid = self._check_tenant_id(raw_id)
            await self._ensure_tenant_free(tid)
            components = await import_registry(url, self.settings, transport=self._transport)
        except RegistryError as e:
            log.info("create_tenant_from_url %r rejected: %s", raw_id, e.message)
            return e.to_result()
        return await self._store_new_tenant(tid, icon, components, name, description)

    async def delete_tenant(self, tenant_id: str) -> ActionResult:
        """Remove a tenant and every component record under it. Missing tenant: no-op."""
        tid = sanitize_id(tenant_id)
        if not tid:
            return ActionResult(ok=True)

        tenant = await self.get_tenant(tid)
        keys = {self.component_key(tid, n) for n in (tenant.component_names if tenant else [])}
        # also sweep per-component keys the aggregate no longer mentions
        keys.update(await self.kv.keys(self.component_prefix(tid)))
        if keys:
            await self.kv.delete(*sorted(keys))
        await self.kv.delete(self.tenant_key(tid))

        log.info("Deleted tenant %s (%d component keys)", tid, len(keys))
        self._touch("/admin", f"/s/{tid}")
        return ActionResult(ok=True)

    async def update_component(self, tenant_id: str, old_name: str, data: Dict[str, Any]) -> ActionResult:
        """
        Save a component. The intent follows from the arguments:
          - old_name empty               -> create
          - data["name"] == old_name     -> update in place
          - data["name"] != old_name     -> rename (old per-component key removed)
        Create and rename fail with a conflict if the new name is taken.
        """
        old_name = (old_name or "").strip()
        try:
            comp = validate_component(data)
            tid = sanitize_id(tenant_id)
            tenant = await self.get_tenant(tid) if tid else None
            if tenant is None:
                raise TenantNotFound("Registry not found")

            is_rename = bool(old_name) and comp.name != old_name
            if not old_name or is_rename:
                if await self.check_component_exists(tid, comp.name) or tenant.find(comp.name):
                    raise ConflictError(f'A component named "{comp.name}" already exists')
        except RegistryError as e:
            log.info("update_component %s/%s rejected: %s", tenant_id, old_name, e.message)
            return e.to_result()

        # 1) per-component view
        if is_rename:
            await self.kv.delete(self.component_key(tid, old_name))
        await self._put_component(tid, comp)

        # 2) aggregate view
        registry = list(tenant.registry)
        idx = next((i for i, c in enumerate(registry) if old_name and c.name == old_name), None)
        if idx is None:
            registry.append(comp)
        else:
            registry[idx] = comp
        tenant.registry = registry
        await self._put_tenant(tid, TenantRecord.model_validate(tenant.to_kv()))

        action = "created" if not old_name else ("renamed" if is_rename else "updated")
        log.info("Component %s/%s %s", tid, comp.name, action)
        paths = [f"/s/{tid}", f"/s/{tid}/items/{comp.name}"]
        if is_rename:
            paths.append(f"/s/{tid}/items/{old_name}")
        self._touch(*paths)
        return ActionResult(ok=True)

    async def delete_component(self, tenant_id: str, name: str) -> ActionResult:
        if not name:
            return InputValidationError("Component name is required").to_result()
        tid = sanitize_id(tenant_id)
        tenant = await self.get_tenant(tid) if tid else None
        if tenant is None:
            return TenantNotFound("Registry not found").to_result()

        await self.kv.delete(self.component_key(tid, name))
        if tenant.find(name) is not None:
            tenant.registry = [c for c in tenant.registry if c.name != name]
            await self._put_tenant(tid, tenant)

        log.info("Component %s/%s deleted", tid, name)
        self._touch(f"/s/{tid}", f"/s/{tid}/items/{name}")
        return ActionResult(ok=True)
