import asyncio
import json

import httpx
import pytest

from common.errors import UpstreamError
from common.kv import MemoryKV
from common.registry import TenantRegistry
from connectors.shadcn.ingest import import_registry

REGISTRY_URL = "https://acme.dev/r/registry.json"

LISTING = {
    "name": "acme",
    "items": [
        {"name": "button", "type": "registry:ui", "description": "listed"},
        {"name": "card", "type": "registry:ui", "description": "listed"},
    ],
}


def routes_transport(routes: dict) -> httpx.MockTransport:
    """
    Map full URLs to responses. A value may be an httpx.Response, an exception
    instance to raise, or any JSON-able object (served as application/json).
    """
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        seen.append(url)
        if url not in routes:
            return httpx.Response(404, json={"error": "not found"})
        value = routes[url]
        if isinstance(value, Exception):
            raise value
        if isinstance(value, httpx.Response):
            return value
        return httpx.Response(200, json=value)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


def button_doc():
    return {
        "name": "button",
        "type": "registry:ui",
        "dependencies": ["@radix-ui/react-slot"],
        "files": [{"path": "ui/button.tsx", "type": "registry:ui", "content": "export function Button() {}"}],
    }


@pytest.mark.asyncio
async def test_styles_convention_enriches_components(cfg):
    transport = routes_transport({
        REGISTRY_URL: LISTING,
        "https://acme.dev/r/styles/index.json": [{"name": "new-york"}, {"name": "default"}],
        "https://acme.dev/r/styles/default/button.json": button_doc(),
        # card.json missing -> 404 -> stays as listed
    })

    comps = await import_registry(REGISTRY_URL, cfg, transport=transport)

    assert [c.name for c in comps] == ["button", "card"]
    assert comps[0].files[0].content == "export function Button() {}"
    assert comps[0].dependencies == ["@radix-ui/react-slot"]
    assert comps[1].files == []
    assert comps[1].description == "listed"
    # styles convention produced something, so no per-component fallback requests
    assert "https://acme.dev/r/button" not in transport.seen


@pytest.mark.asyncio
async def test_falls_back_to_per_component_documents(cfg):
    transport = routes_transport({
        REGISTRY_URL: LISTING,
        "https://acme.dev/r/button": button_doc(),
    })

    comps = await import_registry(REGISTRY_URL, cfg, transport=transport)

    assert comps[0].files[0].path == "ui/button.tsx"
    assert comps[1].description == "listed"
    assert "https://acme.dev/r/styles/index.json" in transport.seen


@pytest.mark.asyncio
async def test_style_with_no_documents_falls_back(cfg):
    transport = routes_transport({
        REGISTRY_URL: LISTING,
        "https://acme.dev/r/styles/index.json": ["mono"],
        "https://acme.dev/r/card": {"name": "card", "files": [{"path": "card.tsx"}]},
    })

    comps = await import_registry(REGISTRY_URL, cfg, transport=transport)

    assert "https://acme.dev/r/styles/mono/button.json" in transport.seen
    assert comps[0].files == []
    assert comps[1].files[0].path == "card.tsx"


@pytest.mark.asyncio
async def test_component_timeout_and_bad_documents_degrade(cfg):
    transport = routes_transport({
        REGISTRY_URL: LISTING,
        "https://acme.dev/r/button": httpx.ReadTimeout("slow"),
        "https://acme.dev/r/card": {"name": "card", "files": "not-a-list"},
    })

    comps = await import_registry(REGISTRY_URL, cfg, transport=transport)

    assert [c.description for c in comps] == ["listed", "listed"]
    assert all(c.files == [] for c in comps)


@pytest.mark.asyncio
async def test_bounded_concurrency_still_fetches_everything(cfg):
    transport = routes_transport({
        REGISTRY_URL: LISTING,
        "https://acme.dev/r/button": button_doc(),
        "https://acme.dev/r/card": {"name": "card", "files": [{"path": "card.tsx"}]},
    })

    comps = await import_registry(REGISTRY_URL, cfg.model_copy(update={"import_concurrency": 1}), transport=transport)

    assert all(c.files for c in comps)


@pytest.mark.asyncio
@pytest.mark.parametrize("response,fragment", [
    (httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"}), "Content-Type"),
    (httpx.Response(500, json={"error": "boom"}), "HTTP 500"),
    (httpx.Response(200, content=b"{oops", headers={"content-type": "application/json"}), "not valid JSON"),
    (httpx.ConnectTimeout("slow"), "Timed out"),
    (httpx.ConnectError("refused"), "failed"),
])
async def test_top_level_failures_raise_upstream_error(cfg, response, fragment):
    transport = routes_transport({REGISTRY_URL: response})
    with pytest.raises(UpstreamError) as exc:
        await import_registry(REGISTRY_URL, cfg, transport=transport)
    assert fragment in exc.value.message


@pytest.mark.asyncio
async def test_timeout_is_distinguished_from_status(cfg):
    transport = routes_transport({REGISTRY_URL: httpx.ReadTimeout("slow")})
    with pytest.raises(UpstreamError) as exc:
        await import_registry(REGISTRY_URL, cfg, transport=transport)
    assert exc.value.timed_out is True
    assert exc.value.status_code is None


# ---------- through the store ----------

@pytest.mark.asyncio
async def test_create_tenant_from_url_writes_both_views(cfg):
    kv = MemoryKV()
    transport = routes_transport({
        REGISTRY_URL: LISTING,
        "https://acme.dev/r/styles/index.json": [{"name": "default"}],
        "https://acme.dev/r/styles/default/button.json": button_doc(),
        "https://acme.dev/r/styles/default/card.json": httpx.ReadTimeout("slow"),
    })
    reg = TenantRegistry(kv, cfg, transport=transport)

    result = await reg.create_tenant_from_url("acme", "📦", REGISTRY_URL, name="Acme")

    assert result.ok is True, result.error
    assert result.redirect == "https://acme.example.com"
    tenant = await reg.get_tenant("acme")
    assert tenant.component_names == ["button", "card"]
    assert tenant.name == "Acme"
    assert await kv.keys("component:acme:") == ["component:acme:button", "component:acme:card"]
    stored = json.loads(await kv.get("component:acme:button"))
    assert stored["files"][0]["content"] == "export function Button() {}"


@pytest.mark.asyncio
async def test_create_tenant_from_url_upstream_failure_stores_nothing(cfg):
    kv = MemoryKV()
    transport = routes_transport({REGISTRY_URL: httpx.Response(503, text="down")})
    reg = TenantRegistry(kv, cfg, transport=transport)

    result = await reg.create_tenant_from_url("acme", "📦", REGISTRY_URL)

    assert result.ok is False
    assert result.kind == "upstream"
    assert "HTTP 503" in result.error
    assert await kv.keys("") == []


@pytest.mark.asyncio
async def test_create_tenant_from_url_checks_inputs_before_fetching(cfg):
    transport = routes_transport({REGISTRY_URL: LISTING})
    reg = TenantRegistry(MemoryKV(), cfg, transport=transport)

    assert (await reg.create_tenant_from_url("acme", "📦", "ftp://acme.dev/r")).kind == "validation"
    assert (await reg.create_tenant_from_url("Acme!", "📦", REGISTRY_URL)).kind == "validation"
    assert (await reg.create_tenant_from_url("acme", "nope", REGISTRY_URL)).kind == "validation"
    assert transport.seen == []


@pytest.mark.asyncio
async def test_slow_top_level_response_is_bounded_by_total_timeout(cfg):
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, json=LISTING)

    fast_cfg = cfg.model_copy(update={"registry_fetch_timeout": 0.05})
    with pytest.raises(UpstreamError) as exc:
        await import_registry(REGISTRY_URL, fast_cfg, transport=httpx.MockTransport(slow))
    assert exc.value.timed_out is True
    assert exc.value.message == f"Timed out fetching {REGISTRY_URL}"
