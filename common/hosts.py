# common/hosts.py
from __future__ import annotations
from typing import Mapping, Optional
from common.settings import Settings

LOCAL_HOSTS = ("localhost", "127.0.0.1")
PREVIEW_DELIMITER = "---"


def resolve_tenant_from_host(host: Optional[str], cfg: Settings) -> Optional[str]:
    """
    Map a request host to a tenant id, or None for the root site.

      foo.localhost:3000            -> "foo"
      acme.<root-domain>            -> "acme"
      acme---my-branch.vercel.app   -> "acme"   (preview deployments)
      <root-domain>, www.<root>     -> None
    """
    hostname = (host or "").strip().lower().split(":")[0]
    if not hostname:
        return None

    # Local development
    if any(h in hostname for h in LOCAL_HOSTS):
        if ".localhost" in hostname:
            return hostname.split(".")[0] or None
        return None

    # Preview deployments: tenant---branch.vercel.app
    if PREVIEW_DELIMITER in hostname and hostname.endswith(cfg.preview_suffix):
        return hostname.split(PREVIEW_DELIMITER)[0] or None

    root = cfg.root_hostname
    if hostname in (root, f"www.{root}"):
        return None
    suffix = f".{root}"
    if hostname.endswith(suffix):
        return hostname[: -len(suffix)] or None
    return None


def resolve_tenant_from_headers(headers: Mapping[str, str], cfg: Settings) -> Optional[str]:
    # forwarded host wins: behind a proxy the Host header is the upstream's
    host = headers.get("x-forwarded-host") or headers.get("host") or ""
    # a proxy chain may send "a, b"; the first is the client-facing host
    return resolve_tenant_from_host(host.split(",")[0], cfg)
