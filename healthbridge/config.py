"""Configuration management for the HealthBridge credential service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

DEFAULT_POOL_SIZE = 10
DEFAULT_STORE_TIMEOUT = 5.0
DEFAULT_BCRYPT_ROUNDS = 12
DEFAULT_SESSION_TTL = 8 * 60 * 60

_ENV_KEYS: Dict[str, str] = {
    "database_path": "HEALTHBRIDGE_DB_PATH",
    "pool_size": "HEALTHBRIDGE_DB_POOL_SIZE",
    "store_timeout": "HEALTHBRIDGE_DB_TIMEOUT",
    "bcrypt_rounds": "HEALTHBRIDGE_BCRYPT_ROUNDS",
    "session_secret": "HEALTHBRIDGE_SESSION_SECRET",
    "session_ttl": "HEALTHBRIDGE_SESSION_TTL",
    "cors_origins": "HEALTHBRIDGE_CORS_ORIGINS",
}


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the store, the password hasher and sessions."""

    database_path: Path
    pool_size: int = DEFAULT_POOL_SIZE
    store_timeout: float = DEFAULT_STORE_TIMEOUT
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    session_secret: Optional[str] = None
    session_ttl: int = DEFAULT_SESSION_TTL
    cors_origins: Tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def from_mapping(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw (YAML or environment) values."""

        unknown = set(data) - set(_ENV_KEYS)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        raw_path = data.get("database_path")
        if raw_path:
            candidate = Path(str(raw_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        settings = Settings(
            database_path=database_path,
            pool_size=_as_int(data, "pool_size", DEFAULT_POOL_SIZE, minimum=1),
            store_timeout=_as_float(data, "store_timeout", DEFAULT_STORE_TIMEOUT),
            bcrypt_rounds=_as_int(data, "bcrypt_rounds", DEFAULT_BCRYPT_ROUNDS, minimum=4),
            session_secret=str(data["session_secret"]) if data.get("session_secret") else None,
            session_ttl=_as_int(data, "session_ttl", DEFAULT_SESSION_TTL, minimum=1),
            cors_origins=_as_origins(data.get("cors_origins")),
        )
        if settings.bcrypt_rounds > 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return settings


def _as_int(data: Mapping[str, object], key: str, default: int, *, minimum: int) -> int:
    value = data.get(key)
    if value is None or value == "":
        return default
    try:
        number = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be an integer, got {value!r}") from exc
    if number < minimum:
        raise ValueError(f"{key} must be at least {minimum}")
    return number


def _as_float(data: Mapping[str, object], key: str, default: float) -> float:
    value = data.get(key)
    if value is None or value == "":
        return default
    try:
        number = float(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ValueError(f"{key} must be positive")
    return number


def _as_origins(value: object) -> Tuple[str, ...]:
    if value is None or value == "":
        return ()
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value if str(item).strip())
    raise ValueError("cors_origins must be a list or a comma separated string")


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the credential store."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "healthbridge.sqlite3").resolve(strict=False)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "healthbridge.yaml").resolve(strict=False)


def _read_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping")
    section = raw.get("healthbridge", {}) or {}
    if not isinstance(section, dict):
        raise ValueError("The 'healthbridge' key must hold a mapping of settings")
    return dict(section)


def load_settings(
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from the optional YAML file, then apply environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("HEALTHBRIDGE_CONFIG"))

    values: Dict[str, object] = {}
    base_path: Path | None = None
    if path.exists():
        values.update(_read_yaml(path))
        base_path = path.parent

    for key, env_name in _ENV_KEYS.items():
        raw = env.get(env_name)
        if raw is not None and raw.strip():
            values[key] = raw

    return Settings.from_mapping(values, base_path=base_path)


__all__ = ["Settings", "load_settings", "resolve_config_path", "resolve_database_path"]
