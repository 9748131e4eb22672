"""Client configuration and credentials.

Config discovery (first match wins):
  1. explicit ``path`` argument
  2. ``./openai_api.yaml``
  3. ``~/.config/openai-api/config.yaml``
  4. Built-in defaults

Credentials not present in the YAML fall back to
``APIAuthentication.default()``: environment, then ``./.openai``, then
``~/.openai``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

_logger = logging.getLogger(__name__)

DEFAULT_URL_FORMAT = "https://api.openai.com/{0}/{1}"
DEFAULT_API_VERSION = "v1"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_TIMEOUT = 240.0

# Checked in order; the first non-empty one wins
_KEY_ENV_VARS = ("OPENAI_API_KEY", "OPENAI_KEY", "OPENAI_SECRET_KEY")
_ORG_ENV_VAR = "OPENAI_ORGANIZATION"
_AUTH_FILENAME = ".openai"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@dataclass
class APIAuthentication:
    """API key plus optional organization id."""

    api_key: str | None = None
    organization: str | None = None

    @property
    def is_set(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_env(cls) -> APIAuthentication | None:
        key = next((os.environ[v] for v in _KEY_ENV_VARS if os.environ.get(v)), None)
        if not key:
            return None
        return cls(api_key=key, organization=os.environ.get(_ORG_ENV_VAR) or None)

    @classmethod
    def from_file(cls, path: str | Path) -> APIAuthentication | None:
        """Read a ``.openai`` file of ``KEY=value`` lines.

        Recognized keys are the environment variable names.  Returns
        ``None`` if the file is missing or holds no key.
        """
        path = Path(path).expanduser()
        if path.is_dir():
            path = path / _AUTH_FILENAME
        if not path.is_file():
            return None

        values: dict[str, str] = {}
        for raw_line in path.read_text().splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            values[k.strip().upper()] = v.strip()

        key = next((values[v] for v in _KEY_ENV_VARS if values.get(v)), None)
        if not key:
            _logger.warning("No API key found in %s", path)
            return None
        return cls(api_key=key, organization=values.get(_ORG_ENV_VAR) or None)

    @classmethod
    def default(cls) -> APIAuthentication:
        """Environment, then ``./.openai``, then ``~/.openai``."""
        auth = cls.from_env()
        if auth is None:
            auth = cls.from_file(Path.cwd() / _AUTH_FILENAME)
        if auth is None:
            auth = cls.from_file(Path.home() / _AUTH_FILENAME)
        return auth or cls()


# ---------------------------------------------------------------------------
# Client config
# ---------------------------------------------------------------------------

@dataclass
class ClientConfig:
    """Top-level client configuration."""

    url_format: str = DEFAULT_URL_FORMAT
    api_version: str = DEFAULT_API_VERSION
    timeout: float = DEFAULT_TIMEOUT  # seconds, whole request/stream
    default_model: str = DEFAULT_MODEL
    auth: APIAuthentication = field(default_factory=APIAuthentication)
    # Tunables merged into every conversation's request parameters
    default_request: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./openai_api.yaml"),
    Path.home() / ".config" / "openai-api" / "config.yaml",
]


def _parse_auth(raw: dict[str, Any]) -> APIAuthentication:
    if raw.get("api_key"):
        return APIAuthentication(
            api_key=raw["api_key"],
            organization=raw.get("organization"),
        )
    auth = APIAuthentication.default()
    if raw.get("organization"):
        auth.organization = raw["organization"]
    return auth


def load_config(path: str | Path | None = None) -> ClientConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Returns
    -------
    ClientConfig
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return ClientConfig(auth=APIAuthentication.default())
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return ClientConfig(auth=APIAuthentication.default())

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return ClientConfig(
        url_format=raw.get("url_format", DEFAULT_URL_FORMAT),
        api_version=raw.get("api_version", DEFAULT_API_VERSION),
        timeout=float(raw.get("timeout", DEFAULT_TIMEOUT)),
        default_model=raw.get("model", DEFAULT_MODEL),
        auth=_parse_auth(raw.get("auth") or {}),
        default_request=raw.get("request", {}) or {},
    )
