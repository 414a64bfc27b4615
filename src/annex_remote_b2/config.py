"""Remote configuration and process settings.

``RemoteConfig`` is what git-annex hands us through GETCONFIG (plus the
credential fallbacks from the environment). ``RemoteSettings`` are local
tunables for this process, read from an optional YAML file.
"""

import os
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

import yaml
from pydantic import BaseModel, ValidationError, field_validator

from .constants import (
    ACCOUNT_ID_ENV_VARS,
    APP_KEY_ENV_VARS,
    CONFIG_ACCOUNT_ID,
    CONFIG_APP_KEY,
    CONFIG_BUCKET,
    CONFIG_PREFIX,
    DEBUG_LOG_ENV_VAR,
    EXISTENCE_CACHE_TTL,
    LOG_LEVEL_ENV_VAR,
    PROGRESS_THRESHOLD,
    SETTINGS_DIR,
    SETTINGS_ENV_VAR,
    SETTINGS_FILE,
)
from .errors import ConfigError, MissingConfigError


def normalize_prefix(prefix: str) -> str:
    """Return ``prefix`` empty or ending in exactly one ``/``."""
    stripped = prefix.rstrip("/")
    return stripped + "/" if stripped else ""


class RemoteConfig(BaseModel):
    """Resolved configuration for one remote."""
    account_id: str
    app_key: str
    bucket: str
    prefix: str = ""

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        return normalize_prefix(v)

    def remote_name(self, key: str) -> str:
        """Remote object name for ``key``."""
        return self.prefix + key


def _first_env(environ: Mapping[str, str], names: Sequence[str]) -> str:
    for name in names:
        value = environ.get(name, "")
        if value:
            return value
    return ""


def resolve_remote_config(
    get_config: Callable[[str], str],
    environ: Optional[Mapping[str, str]] = None,
) -> RemoteConfig:
    """
    Resolve remote configuration.

    Resolution order per field: value from git-annex, else environment
    fallback (credentials only), else MissingConfigError.

    Args:
        get_config: Asks git-annex for a named setting, "" if unset
        environ: Environment mapping (defaults to os.environ)

    Raises:
        MissingConfigError: If a required value is missing
    """
    environ = os.environ if environ is None else environ

    account_id = get_config(CONFIG_ACCOUNT_ID) or _first_env(environ, ACCOUNT_ID_ENV_VARS)
    if not account_id:
        raise MissingConfigError(CONFIG_ACCOUNT_ID, "the backblaze account id")

    app_key = get_config(CONFIG_APP_KEY) or _first_env(environ, APP_KEY_ENV_VARS)
    if not app_key:
        raise MissingConfigError(CONFIG_APP_KEY, "the backblaze application key")

    bucket = get_config(CONFIG_BUCKET)
    if not bucket:
        raise MissingConfigError(CONFIG_BUCKET, "the bucket name")

    # Empty prefix is fine
    prefix = get_config(CONFIG_PREFIX)

    return RemoteConfig(account_id=account_id, app_key=app_key, bucket=bucket, prefix=prefix)


class RemoteSettings(BaseModel):
    """Local process tunables."""
    log_level: str = "WARNING"
    debug_log: Optional[str] = None       # Tee protocol bytes here
    cache_ttl_seconds: float = EXISTENCE_CACHE_TTL
    progress_threshold: int = PROGRESS_THRESHOLD
    realm: str = "production"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


def default_settings_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    environ = os.environ if environ is None else environ
    if environ.get(SETTINGS_ENV_VAR):
        return Path(environ[SETTINGS_ENV_VAR])
    return Path.home() / SETTINGS_DIR / SETTINGS_FILE


def load_settings(
    path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, object]] = None,
) -> RemoteSettings:
    """
    Load settings from YAML, then apply environment and explicit overrides.

    A missing file yields defaults. Overrides whose value is None are ignored.

    Raises:
        ConfigError: If the file exists but cannot be read or is invalid
    """
    environ = os.environ if environ is None else environ
    path = path or default_settings_path(environ)

    data = {}
    if path.exists():
        try:
            data = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Couldn't read settings file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")

    if environ.get(DEBUG_LOG_ENV_VAR):
        data["debug_log"] = environ[DEBUG_LOG_ENV_VAR]
    if environ.get(LOG_LEVEL_ENV_VAR):
        data["log_level"] = environ[LOG_LEVEL_ENV_VAR]
    for name, value in (overrides or {}).items():
        if value is not None:
            data[name] = value

    try:
        return RemoteSettings(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e
