# apps/gateway/main.py
import logging
from typing import Any, Dict, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from common.errors import ActionResult
from common.hosts import resolve_tenant_from_headers
from common.kv import create_kv
from common.registry import TenantRegistry
from common.settings import settings

load_dotenv()  # picks up .env from the current working directory

log = logging.getLogger("registry-hub")
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

# registry JSON is fetched by the shadcn CLI from other origins
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET",
    "Access-Control-Allow-Headers": "Content-Type",
}

STATUS_FOR_KIND = {"validation": 400, "conflict": 409, "not_found": 404, "upstream": 502}


def _log_revalidate(path: str) -> None:
    # no page cache in this service; keep the hook so a CDN purge can be plugged in
    log.info("revalidate %s", path)


# ---------- Models ----------
class CreateTenantRequest(BaseModel):
    subdomain: str = Field(..., description="Tenant id: lowercase letters, digits, hyphens")
    icon: str
    registry: Optional[str] = Field(default=None, description="Inline registry JSON array (as text)")
    registry_url: Optional[str] = Field(default=None, description="URL of a remote registry.json")
    name: Optional[str] = None
    description: Optional[str] = None

    @model_validator(mode="after")
    def _one_source(self) -> "CreateTenantRequest":
        if bool(self.registry) == bool(self.registry_url):
            raise ValueError("Provide exactly one of 'registry' or 'registry_url'")
        return self


class UpdateComponentRequest(BaseModel):
    old_name: str = Field(default="", description="Current name; empty to create a new component")
    component: Dict[str, Any]


# ---------- App ----------
app = FastAPI(title="registry-hub", version="0.1.0")
app.state.registry = TenantRegistry(create_kv(settings), settings, revalidate=_log_revalidate)


def _registry(request: Request) -> TenantRegistry:
    return request.app.state.registry


def _respond(result: ActionResult):
    if result.ok:
        return result.model_dump(exclude_none=True)
    return JSONResponse(status_code=STATUS_FOR_KIND.get(result.kind or "", 400),
                        content=result.model_dump(exclude_none=True))


@app.on_event("startup")
def _print_cfg():
    cfg = app.state.registry.settings
    log.info("CFG root_domain=%s protocol=%s kv=%s", cfg.root_domain, cfg.protocol,
             "redis" if cfg.kv_url else "memory")


@app.on_event("shutdown")
async def _close_store():
    close = getattr(app.state.registry.kv, "close", None)
    if close is not None:
        await close()
        log.info("kv store closed")


@app.get("/health")
def health(request: Request):
    cfg = _registry(request).settings
    return {"ok": True, "service": "registry-hub", "root_domain": cfg.root_domain}


# ---------- Registry endpoints (consumed by the shadcn CLI) ----------
async def _registry_items(reg: TenantRegistry, tenant: str):
    data = await reg.get_tenant(tenant)
    if data is None:
        raise HTTPException(status_code=404, detail="Registry not found")
    return JSONResponse([c.to_kv() for c in data.registry], headers=CORS_HEADERS)


async def _component(reg: TenantRegistry, tenant: str, item: str, style: Optional[str] = None):
    if await reg.get_tenant(tenant) is None:
        raise HTTPException(status_code=404, detail="Registry not found")
    comp = await reg.get_component(tenant, item)
    if comp is None:
        raise HTTPException(status_code=404, detail="Component not found")
    body = comp.to_kv()
    if style:
        body["style"] = style
        body["meta"] = {**(body.get("meta") or {}), "requestedStyle": style}
    return JSONResponse(body, headers=CORS_HEADERS)


def _host_tenant(request: Request) -> str:
    tenant = resolve_tenant_from_headers(request.headers, _registry(request).settings)
    if not tenant:
        raise HTTPException(status_code=400, detail="No subdomain found")
    return tenant


@app.get("/r")
async def host_registry(request: Request):
    return await _registry_items(_registry(request), _host_tenant(request))


@app.get("/r/{item}")
async def host_component(request: Request, item: str):
    return await _component(_registry(request), _host_tenant(request), item)


@app.get("/s/{tenant}/r")
async def tenant_registry(request: Request, tenant: str):
    return await _registry_items(_registry(request), tenant)


@app.get("/s/{tenant}/r/{item}")
async def tenant_component(request: Request, tenant: str, item: str):
    return await _component(_registry(request), tenant, item)


@app.get("/s/{tenant}/r/styles/{style}/{item}")
async def tenant_styled_component(request: Request, tenant: str, style: str, item: str):
    return await _component(_registry(request), tenant, item, style=style)


# ---------- Admin / mutations ----------
@app.get("/admin/tenants")
async def admin_tenants(request: Request):
    tenants = await _registry(request).list_tenants()
    return {"ok": True, "tenants": [t.model_dump(by_alias=True) for t in tenants]}


@app.post("/tenants")
async def create_tenant(request: Request, req: CreateTenantRequest = Body(...)):
    reg = _registry(request)
    if req.registry_url:
        result = await reg.create_tenant_from_url(req.subdomain, req.icon, req.registry_url,
                                                  name=req.name, description=req.description)
    else:
        result = await reg.create_tenant(req.subdomain, req.icon, req.registry,
                                         name=req.name, description=req.description)
    return _respond(result)


@app.delete("/tenants/{tenant}")
async def delete_tenant(request: Request, tenant: str):
    return _respond(await _registry(request).delete_tenant(tenant))


@app.put("/tenants/{tenant}/components")
async def save_component(request: Request, tenant: str, req: UpdateComponentRequest = Body(...)):
    return _respond(await _registry(request).update_component(tenant, req.old_name, req.component))


@app.delete("/tenants/{tenant}/components/{name}")
async def delete_component(request: Request, tenant: str, name: str):
    return _respond(await _registry(request).delete_component(tenant, name))


@app.get("/tenants/{tenant}/components/{name}:exists")
async def component_exists(request: Request, tenant: str, name: str):
    return {"ok": True, "exists": await _registry(request).check_component_exists(tenant, name)}


@app.get("/")
def hub_root():
    return {
        "service": "registry-hub",
        "endpoints": {
            "health": "/health",
            "registry (by host)": "GET /r",
            "registry (by path)": "GET /s/{tenant}/r",
            "component": "GET /s/{tenant}/r/{item}",
            "tenants": "GET /admin/tenants",
            "create": "POST /tenants",
            "save component": "PUT /tenants/{tenant}/components",
            "docs": "/docs",
        }
    }


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
