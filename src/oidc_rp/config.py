# Settings for the relying party, loaded from OIDC_RP_* environment variables.
# Created: 2026-10-19

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Get/create the config directory (~/.oidc-rp)."""
    d = Path.home() / ".oidc-rp"
    d.mkdir(exist_ok=True)
    return d


class Settings(BaseSettings):
    """Relying party settings."""

    model_config = SettingsConfigDict(
        env_prefix="OIDC_RP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # This RP's own base URI; issuers see it as the audience / redirect origin.
    server_uri: str = Field(default="http://localhost:8443")

    # Issuers redirect to {callback_prefix}/{issuer_id}
    callback_prefix: str = Field(default="/api/oidc/rp")

    session_cookie_name: str = Field(default="oidc_rp_session")
    session_cookie_secure: bool = Field(default=False)
    session_ttl_seconds: int = Field(default=4 * 3600, gt=0)
    # Least recently seen sessions are evicted beyond this
    session_max_count: int = Field(default=10_000, gt=0)

    http_timeout_seconds: float = Field(default=15.0, gt=0)

    # None means <config dir>/clients.json
    clients_path: Path | None = None

    log_level: str = Field(default="INFO")

    @field_validator("server_uri")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("callback_prefix")
    @classmethod
    def _normalize_prefix(cls, v: str) -> str:
        v = "/" + v.strip("/")
        return v if v != "/" else ""

    def resolved_clients_path(self) -> Path:
        return self.clients_path or get_config_dir() / "clients.json"

    @classmethod
    def load(cls) -> Settings:
        """Build settings from the environment (and .env if present)."""
        settings = cls()
        logger.debug("Loaded settings for %s", settings.server_uri)
        return settings


@lru_cache
def get_settings() -> Settings:
    """Process-wide cached settings."""
    return Settings.load()
