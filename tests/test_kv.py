import fnmatch

import pytest

from apps.gateway.main import _close_store, app
from common.kv import MemoryKV, RedisKV, create_kv
from common.registry import TenantRegistry


class FakeRedisClient:
    """The slice of redis.asyncio.Redis that RedisKV calls, backed by a dict."""

    def __init__(self):
        self.data = {}
        self.closed = False
        self.scan_patterns = []

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value):
        self.data[key] = value
        return True

    async def delete(self, *keys):
        return sum(1 for k in keys if self.data.pop(k, None) is not None)

    async def mget(self, keys):
        return [self.data.get(k) for k in keys]

    async def scan_iter(self, match=None):
        self.scan_patterns.append(match)
        for key in list(self.data):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self):
        self.closed = True


@pytest.fixture
def client():
    return FakeRedisClient()


@pytest.fixture
def redis_kv(client):
    return RedisKV("redis://localhost:6379/0", client=client)


@pytest.mark.asyncio
async def test_keys_scan_by_prefix_sorted(redis_kv, client):
    for key in ("tenant:b", "tenant:a", "component:a:x", "tenants-index"):
        await redis_kv.set(key, "{}")

    assert await redis_kv.keys("tenant:") == ["tenant:a", "tenant:b"]
    assert client.scan_patterns == ["tenant:*"]


@pytest.mark.asyncio
async def test_mget_keeps_order_and_reports_missing_as_none(redis_kv):
    await redis_kv.set("k1", "one")
    await redis_kv.set("k3", "three")

    assert await redis_kv.mget(["k3", "k2", "k1"]) == ["three", None, "one"]
    assert await redis_kv.mget([]) == []


@pytest.mark.asyncio
async def test_delete_counts_removed_keys(redis_kv):
    await redis_kv.set("a", "1")
    await redis_kv.set("b", "2")

    assert await redis_kv.delete() == 0
    assert await redis_kv.delete("a", "b", "missing") == 2
    assert await redis_kv.get("a") is None


@pytest.mark.asyncio
async def test_registry_runs_on_redis_backend(redis_kv, cfg):
    reg = TenantRegistry(redis_kv, cfg)
    assert (await reg.create_tenant("acme", "📦", '[{"name": "button"}]')).ok
    assert (await reg.get_component("acme", "button")).name == "button"
    assert [t.tenant for t in await reg.list_tenants()] == ["acme"]
    await reg.delete_tenant("acme")
    assert await redis_kv.keys("") == []


def test_create_kv_without_url_is_memory(cfg):
    assert isinstance(create_kv(cfg), MemoryKV)
    assert isinstance(create_kv(cfg.model_copy(update={"kv_url": "   "})), MemoryKV)


@pytest.mark.parametrize("url", ["redis://localhost:6379/0", "rediss://cache.example.com:6380"])
def test_create_kv_redis_urls(cfg, url):
    assert isinstance(create_kv(cfg.model_copy(update={"kv_url": url})), RedisKV)


def test_create_kv_rejects_unknown_scheme(cfg):
    with pytest.raises(ValueError, match="memcached"):
        create_kv(cfg.model_copy(update={"kv_url": "memcached://localhost"}))


@pytest.mark.asyncio
async def test_shutdown_closes_redis_client(redis_kv, client, cfg):
    original = app.state.registry
    app.state.registry = TenantRegistry(redis_kv, cfg)
    try:
        await _close_store()
    finally:
        app.state.registry = original
    assert client.closed is True


@pytest.mark.asyncio
async def test_shutdown_with_memory_store_is_a_no_op(cfg):
    original = app.state.registry
    app.state.registry = TenantRegistry(MemoryKV(), cfg)
    try:
        await _close_store()
    finally:
        app.state.registry = original
