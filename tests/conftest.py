"""
Pytest configuration and fixtures.
"""
import json

import pytest

from common.kv import MemoryKV
from common.registry import TenantRegistry
from common.settings import Settings


@pytest.fixture
def cfg() -> Settings:
    # _env_file=None: tests must not pick up a developer's .env
    return Settings(root_domain="example.com", environment="production", kv_url=None, _env_file=None)


@pytest.fixture
def kv() -> MemoryKV:
    return MemoryKV()


@pytest.fixture
def touched() -> list:
    """Paths passed to the revalidation hook."""
    return []


@pytest.fixture
def registry(kv, cfg, touched) -> TenantRegistry:
    return TenantRegistry(kv, cfg, revalidate=touched.append)


def component(name: str, **extra) -> dict:
    return {"name": name, "type": "registry:ui", **extra}


def registry_json(*components: dict) -> str:
    return json.dumps(list(components))
