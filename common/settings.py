# common/settings.py
from __future__ import annotations

import sys
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator


class Settings(BaseSettings):
    # -------- Hub / server ----------
    port: int = Field(3000, validation_alias=AliasChoices("PORT", "port"))
    log_level: str = Field("INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"))

    # -------- Domains ----------
    # Vercel exposes the production host as VERCEL_PROJECT_PRODUCTION_URL; ROOT_DOMAIN wins if both set.
    root_domain: str = Field(
        "localhost:3000",
        validation_alias=AliasChoices("ROOT_DOMAIN", "VERCEL_PROJECT_PRODUCTION_URL", "root_domain"),
    )
    environment: str = Field(
        "development",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV", "environment"),
    )
    preview_suffix: str = Field(".vercel.app", validation_alias=AliasChoices("PREVIEW_SUFFIX", "preview_suffix"))

    # -------- Key-value store (optional; in-memory when unset) ----------
    kv_url: str | None = Field(default=None, validation_alias=AliasChoices("KV_URL", "REDIS_URL", "kv_url"))
    tenant_key_prefix: str = Field("tenant", validation_alias=AliasChoices("TENANT_KEY_PREFIX", "tenant_key_prefix"))
    component_key_prefix: str = Field(
        "component",
        validation_alias=AliasChoices("COMPONENT_KEY_PREFIX", "component_key_prefix"),
    )

    # -------- Remote registry import ----------
    registry_fetch_timeout: float = Field(
        10.0,
        gt=0,
        validation_alias=AliasChoices("REGISTRY_FETCH_TIMEOUT", "registry_fetch_timeout"),
    )
    component_fetch_timeout: float = Field(
        5.0,
        gt=0,
        validation_alias=AliasChoices("COMPONENT_FETCH_TIMEOUT", "component_fetch_timeout"),
    )
    # 0 = one request per component, all at once
    import_concurrency: int = Field(0, ge=0, validation_alias=AliasChoices("IMPORT_CONCURRENCY", "import_concurrency"))

    # pydantic-settings config
    model_config = SettingsConfigDict(
        env_file=".env",                 # load env from repo root
        env_file_encoding="utf-8",
        case_sensitive=False,            # allow lower/upper in env
        populate_by_name=True,
        extra="ignore",                  # ignore unknown env keys
    )

    # Basic validation
    @field_validator("root_domain")
    @classmethod
    def _strip_scheme(cls, v: str) -> str:
        v = (v or "").strip()
        for scheme in ("https://", "http://"):
            if v.startswith(scheme):
                v = v[len(scheme):]
        v = v.rstrip("/")
        if not v:
            raise ValueError("ROOT_DOMAIN must not be empty")
        return v.lower()

    @property
    def protocol(self) -> str:
        return "https" if self.environment.lower() == "production" else "http"

    @property
    def root_hostname(self) -> str:
        """Root domain without its port, as it appears in a Host header after port stripping."""
        return self.root_domain.split(":")[0]

    def tenant_url(self, tenant_id: str) -> str:
        return f"{self.protocol}://{tenant_id}.{self.root_domain}"


def _pretty_fail(msg: str) -> None:
    # Print a friendly error once (useful with uvicorn reload)
    print(f"\n[settings] {msg}\n", file=sys.stderr)
    sys.exit(1)


try:
    settings = Settings()
except Exception as e:
    _pretty_fail(
        "Invalid settings. Check .env (repo root); supported keys:\n"
        "  ROOT_DOMAIN=example.com          (or VERCEL_PROJECT_PRODUCTION_URL)\n"
        "  APP_ENV=production               (or NODE_ENV; selects https)\n"
        "  KV_URL=redis://localhost:6379/0  (or REDIS_URL; in-memory when unset)\n"
        "Optional:\n"
        "  PORT=3000, LOG_LEVEL=INFO, PREVIEW_SUFFIX=.vercel.app\n"
        "  TENANT_KEY_PREFIX=tenant, COMPONENT_KEY_PREFIX=component\n"
        "  REGISTRY_FETCH_TIMEOUT=10, COMPONENT_FETCH_TIMEOUT=5, IMPORT_CONCURRENCY=0\n\n"
        f"Raw error: {e}"
    )
