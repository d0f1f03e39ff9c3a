"""Configuration helpers for atlasctl.

Credentials live in a small JSON file in the user's home directory. Values
are normalized on the way in and on the way out, so a hand-edited file with
``https://Example.atlassian.net/wiki`` as its site still yields a plain
lower-cased host.
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigError, MissingConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".atlasctl.json"
CONFIG_KEYS = ("site", "email", "apikey")
ENV_PREFIX = "ATLASCTL"
HIDDEN_VALUE = "***hidden***"

_DEFAULT_PORTS = {"http": 80, "https": 443}
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_site(value: str) -> str:
    """Return the lower-cased host of ``value``, which may be a bare host or a URL."""

    value = value.strip()
    if not value:
        raise ValueError("Site cannot be empty")

    candidate = value if "://" in value else f"https://{value}"
    invalid = "Invalid site. Use a hostname like your-domain.atlassian.net"
    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise ValueError(invalid) from exc
    if not hostname or any(char.isspace() for char in hostname):
        raise ValueError(invalid)
    if port and port != _DEFAULT_PORTS.get(parts.scheme.lower()):
        return f"{hostname}:{port}"
    return hostname


def normalize_email(value: str) -> str:
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise ValueError("Invalid email address")
    return value


def normalize_apikey(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("API key cannot be empty")
    return value


_NORMALIZERS = {
    "site": normalize_site,
    "email": normalize_email,
    "apikey": normalize_apikey,
}


class AtlasctlConfig(BaseModel):
    """Contents of the local configuration file. Every key is optional."""

    site: Optional[str] = None
    email: Optional[str] = None
    apikey: Optional[str] = None

    @field_validator("site", "email", "apikey", mode="before")
    @classmethod
    def _normalize(cls, value: object, info) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"{info.field_name} must be a string")
        if not value.strip():
            return None
        return _NORMALIZERS[info.field_name](value)


@dataclasses.dataclass(frozen=True)
class FetchCredentials:
    """Validated credentials required to talk to Confluence."""

    site: str
    email: str
    apikey: str


def resolve_config_path(
    config_path: Optional[Path] = None,
    *,
    home_dir: Optional[Path] = None,
) -> Path:
    """Return the configuration file location.

    The priority order is:
    1. Explicit path provided via CLI argument.
    2. The ``ATLASCTL_CONFIG`` environment variable.
    3. ``~/.atlasctl.json``.
    """

    if config_path:
        return Path(config_path)
    env_path = os.getenv(f"{ENV_PREFIX}_CONFIG")
    if env_path:
        return Path(env_path)
    return (home_dir or Path.home()) / CONFIG_FILENAME


def normalize_config_value(key: str, raw_value: str) -> str:
    if key not in _NORMALIZERS:
        raise ConfigError(f"Invalid config key {key!r}. Use one of: {', '.join(CONFIG_KEYS)}")
    try:
        return _NORMALIZERS[key](raw_value)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def read_config(path: Path) -> AtlasctlConfig:
    """Load the configuration file, returning an empty config when it does not exist."""

    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return AtlasctlConfig()
    except OSError as exc:
        raise ConfigError(f"Unable to read config at {path}: {exc.strerror or exc}") from exc

    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("config root is not an object")
        return AtlasctlConfig.model_validate(data)
    except (ValueError, ValidationError) as exc:
        raise ConfigError(
            f"Invalid config at {path}. Ensure it is valid JSON with site/email/apikey strings."
        ) from exc


def write_config(config: AtlasctlConfig, path: Path) -> Path:
    """Persist ``config`` as JSON readable only by the current user."""

    content = json.dumps(config.model_dump(exclude_none=True), indent=2) + "\n"
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        handle.write(content)
    try:
        os.chmod(path, 0o600)
    except OSError as exc:  # pragma: no cover - filesystems without POSIX modes
        logger.debug("Could not restrict permissions on %s: %s", path, exc)
    return path


def set_config_value(key: str, raw_value: str, path: Path) -> Path:
    config = read_config(path)
    updated = config.model_copy(update={key: normalize_config_value(key, raw_value)})
    return write_config(updated, path)


def mask_config(config: AtlasctlConfig) -> dict[str, str]:
    data = config.model_dump(exclude_none=True)
    if "apikey" in data:
        data["apikey"] = HIDDEN_VALUE
    return data


def apply_env_overrides(config: AtlasctlConfig) -> AtlasctlConfig:
    """Return a copy of ``config`` with values taken from ``ATLASCTL_*`` variables."""

    overrides: dict[str, str] = {}
    for key in CONFIG_KEYS:
        value = os.getenv(f"{ENV_PREFIX}_{key.upper()}")
        if value and value.strip():
            overrides[key] = normalize_config_value(key, value)
    if overrides:
        logger.debug("Using environment overrides for: %s", ", ".join(sorted(overrides)))
    return config.model_copy(update=overrides)


def require_fetch_config(config: AtlasctlConfig) -> FetchCredentials:
    """Return fetch credentials, naming every key that is still unset."""

    missing = [key for key in CONFIG_KEYS if not getattr(config, key)]
    if missing:
        raise MissingConfigurationError(missing)
    return FetchCredentials(site=config.site, email=config.email, apikey=config.apikey)


def load_fetch_credentials(path: Path) -> FetchCredentials:
    return require_fetch_config(apply_env_overrides(read_config(path)))
