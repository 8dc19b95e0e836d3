"""Application configuration primitives."""

from __future__ import annotations

import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import HttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_PAGE_SIZE

DEFAULT_SECRETS_PATH = Path(".secrets/secrets.toml")


def _authorization_header(api_key: str | None) -> dict[str, str]:
    if not api_key:
        return {}
    return {"Authorization": f"Bearer {api_key}"}


class Settings(BaseSettings):
    """Central configuration for an import run."""

    sta_base_url: HttpUrl = "http://localhost:8080/FROST-Server/v1.1/"
    sta_api_key: str | None = None
    sta_username: str | None = None
    sta_password: str | None = None

    request_timeout: float = 30.0
    max_retries: int = 3
    retry_backoff: float = 0.5
    page_size: int = DEFAULT_PAGE_SIZE
    upload_chunk_size: int = 1000
    dry_run: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = SettingsConfigDict(env_prefix="STA_IMPORT_", env_file=(), extra="ignore")

    def http_client_config(self) -> dict[str, Any]:
        """Return keyword arguments for the SensorThings HTTP client."""
        base_url = str(self.sta_base_url)
        if not base_url.endswith("/"):
            base_url += "/"
        config: dict[str, Any] = {
            "base_url": base_url,
            "headers": _authorization_header(self.sta_api_key),
        }
        if self.sta_username and self.sta_password is not None:
            config["auth"] = (self.sta_username, self.sta_password)
        if self.request_timeout and self.request_timeout > 0:
            config["timeout"] = float(self.request_timeout)
        return config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""
    overrides = _load_settings_overrides()
    return Settings(**overrides)


def _load_settings_overrides(secrets_path: Path = DEFAULT_SECRETS_PATH) -> dict[str, Any]:
    """Load configuration overrides from the secrets TOML file."""
    if not secrets_path.exists():
        return {}
    data = _read_toml(secrets_path)
    overrides: dict[str, Any] = {}

    service_cfg = _extract_section(data, "sensorthings", "sta", "frost")
    if service_cfg:
        overrides["sta_base_url"] = service_cfg.get("url")
        overrides["sta_username"] = service_cfg.get("username")
        overrides["sta_password"] = service_cfg.get("password")
        api_key = _sanitize_api_key(service_cfg.get("api_key") or service_cfg.get("authorization"))
        if api_key is not None:
            overrides["sta_api_key"] = api_key
        timeout_value = _coerce_float(service_cfg.get("timeout"))
        if timeout_value is not None:
            overrides["request_timeout"] = timeout_value

    general_cfg = data.get("importer") or {}
    overrides.update({key: value for key, value in general_cfg.items() if key in Settings.model_fields})
    return {key: value for key, value in overrides.items() if value is not None}


def _read_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _extract_section(data: dict[str, Any], *candidates: str) -> dict[str, Any] | None:
    for key in candidates:
        section = data.get(key)
        if isinstance(section, dict):
            return section
    return None


def _sanitize_api_key(value: str | None) -> str | None:
    if not value:
        return None
    token = value.strip()
    if token.lower().startswith("bearer "):
        token = token[7:].strip()
    return token or None


def _coerce_float(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None
