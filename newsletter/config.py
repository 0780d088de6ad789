"""Configuration loading for the subscription service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import DEFAULT_CHECKOUT_TIMEOUT, DEFAULT_POOL_SIZE, resolve_database_path

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}


def _resolve_path(raw: str, base_path: Optional[Path]) -> Path:
    candidate = Path(raw).expanduser()
    if candidate.is_absolute() or base_path is None:
        return candidate.resolve(strict=False)
    return (base_path / candidate).resolve(strict=False)


def _parse_port(value: object) -> int:
    try:
        port = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port value: {value!r}") from exc
    if not 0 <= port <= 65535:
        raise ValueError(f"Port {port} is outside the range 0-65535")
    return port


def _parse_pool_size(value: object) -> int:
    try:
        size = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid pool size: {value!r}") from exc
    if size < 1:
        raise ValueError("Pool size must be at least 1")
    return size


def _parse_log_level(value: object) -> str:
    level = str(value).strip().lower()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {value!r}")
    return level


@dataclass(frozen=True)
class ApplicationSettings:
    """Where the HTTP listener binds."""

    host: str = "127.0.0.1"
    port: int = 8000

    @property
    def address(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "ApplicationSettings":
        defaults = ApplicationSettings()
        return ApplicationSettings(
            host=str(data.get("host", defaults.host)),
            port=_parse_port(data.get("port", defaults.port)),
        )


@dataclass(frozen=True)
class DatabaseSettings:
    """Location and pool sizing of the subscriber database."""

    path: Path = field(default_factory=lambda: resolve_database_path(None))
    pool_size: int = DEFAULT_POOL_SIZE
    timeout: float = DEFAULT_CHECKOUT_TIMEOUT

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "DatabaseSettings":
        raw_path = data.get("path")
        path = _resolve_path(str(raw_path), base_path) if raw_path else resolve_database_path(None)
        timeout = float(data.get("timeout", DEFAULT_CHECKOUT_TIMEOUT))  # type: ignore[arg-type]
        if timeout <= 0:
            raise ValueError("Database timeout must be positive")
        return DatabaseSettings(
            path=path,
            pool_size=_parse_pool_size(data.get("pool_size", DEFAULT_POOL_SIZE)),
            timeout=timeout,
        )


@dataclass(frozen=True)
class Settings:
    application: ApplicationSettings = field(default_factory=ApplicationSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    log_level: str = "info"

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        application = data.get("application") or {}
        database = data.get("database") or {}
        if not isinstance(application, Mapping) or not isinstance(database, Mapping):
            raise ValueError("The 'application' and 'database' sections must be mappings")
        return Settings(
            application=ApplicationSettings.from_dict(application),
            database=DatabaseSettings.from_dict(database, base_path=base_path),
            log_level=_parse_log_level(data.get("log_level", "info")),
        )

    def with_environment(self, environ: Mapping[str, str] | None = None) -> "Settings":
        """Return a copy with ``NEWSLETTER_*`` environment overrides applied."""

        env = os.environ if environ is None else environ
        application = self.application
        database = self.database
        log_level = self.log_level

        if env.get("NEWSLETTER_HOST"):
            application = replace(application, host=env["NEWSLETTER_HOST"].strip())
        if env.get("NEWSLETTER_PORT"):
            application = replace(application, port=_parse_port(env["NEWSLETTER_PORT"]))
        if env.get("NEWSLETTER_DB_PATH"):
            database = replace(database, path=resolve_database_path(env["NEWSLETTER_DB_PATH"]))
        if env.get("NEWSLETTER_POOL_SIZE"):
            database = replace(database, pool_size=_parse_pool_size(env["NEWSLETTER_POOL_SIZE"]))
        if env.get("NEWSLETTER_LOG_LEVEL"):
            log_level = _parse_log_level(env["NEWSLETTER_LOG_LEVEL"])

        return Settings(application=application, database=database, log_level=log_level)


def load_settings(config_path: Path, environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings from a YAML file, falling back to defaults when it is absent."""

    raw: Dict[str, object] = {}
    if config_path.exists():
        with config_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")

    settings = Settings.from_dict(raw, base_path=config_path.parent)
    return settings.with_environment(environ)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "newsletter.yaml").resolve(strict=False)
    return candidate


__all__ = [
    "ApplicationSettings",
    "DatabaseSettings",
    "Settings",
    "load_settings",
    "resolve_config_path",
]
