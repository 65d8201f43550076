"""
Key-value backend used by the registry store.

- Single process / local dev: MemoryKV, no external dependency.
- Shared deployments: KV_URL (or REDIS_URL) pointing at Redis; every app instance sees the same keys.

Values are written as JSON strings. Reads return whatever the backend holds, which for
records written by older clients may already be a parsed object; callers decode.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol

import redis.asyncio as redis

from common.settings import Settings

logger = logging.getLogger("registry-hub.kv")


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def keys(self, prefix: str) -> List[str]: ...

    async def mget(self, keys: List[str]) -> List[Any]: ...


class MemoryKV:
    """In-process store; not shared across instances."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def keys(self, prefix: str) -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    async def mget(self, keys: List[str]) -> List[Any]:
        return [self._data.get(k) for k in keys]


class RedisKV:
    """Redis-backed store shared by every instance pointing at the same URL."""

    def __init__(self, url: str, client: Any = None) -> None:
        if client is None:
            client = redis.from_url(url, decode_responses=True)
        self._client = client

    async def get(self, key: str) -> Any:
        return await self._client.get(key)

    async def set(self, key: str, value: Any) -> None:
        await self._client.set(key, value)

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return await self._client.delete(*keys)

    async def keys(self, prefix: str) -> List[str]:
        # SCAN instead of KEYS so large keyspaces don't block the server
        found = [k async for k in self._client.scan_iter(match=f"{prefix}*")]
        return sorted(set(found))

    async def mget(self, keys: List[str]) -> List[Any]:
        if not keys:
            return []
        return await self._client.mget(keys)

    async def close(self) -> None:
        await self._client.aclose()


def create_kv(cfg: Settings) -> KeyValueStore:
    """
    Build the backend from settings:
    - KV_URL empty: in-memory (single instance, data lost on restart).
    - KV_URL redis://... or rediss://...: Redis.
    """
    url = (cfg.kv_url or "").strip()
    if not url:
        logger.warning("KV_URL not set; using in-memory store (data is lost on restart)")
        return MemoryKV()
    if url.startswith("redis://") or url.startswith("rediss://"):
        logger.info("kv store: redis")
        return RedisKV(url)
    raise ValueError(f"Unsupported KV_URL scheme: {url.split('://')[0]}")
