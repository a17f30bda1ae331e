"""
Configuration management for the ICS relay.

Values come from the process environment, optional ``.env`` files and an
optional YAML file. ``Config`` is the loose, dict-backed view used while
starting up; ``RelaySettings`` is the validated, frozen value handed to the
server and the fetcher.
"""

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urlparse

from dotenv import dotenv_values
import yaml

from .exceptions import ConfigurationError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/129.0.0.0 Safari/537.36"
)
DEFAULT_PORT = 8000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_FETCH_OUTPUT = "calendar.ics"

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")

# Lazy one-time .env loading flag
_ENV_LOADED = False


def _load_env_once() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    # Cascading precedence:
    # 1) system environment (highest) - already present in os.environ
    # 2) .env in the current working directory
    # 3) .env at the project root
    # Values are only applied for keys the OS environment does not define.
    project_root = Path(__file__).parent.parent.parent
    project_env = project_root / ".env"
    cwd_env = Path.cwd() / ".env"

    project_vals = dotenv_values(project_env) if project_env.exists() else {}
    cwd_vals = dotenv_values(cwd_env) if cwd_env.exists() else {}

    merged = {}
    merged.update({k: v for k, v in project_vals.items() if v is not None})
    merged.update({k: v for k, v in cwd_vals.items() if v is not None})

    for k, v in merged.items():
        if k and v is not None and k not in os.environ:
            os.environ[k] = str(v)
    _ENV_LOADED = True


def _default_data() -> dict:
    return {
        "upstream": {
            "url": "${ICS_URL}",
            "timeout": "${UPSTREAM_TIMEOUT}",
            "user_agent": "${UPSTREAM_USER_AGENT}",
        },
        "auth": {
            "enabled": "${AUTH_ENABLED}",
            "access_token": "${ACCESS_TOKEN}",
        },
        "web_server": {
            "host": "${HOST}",
            "port": "${PORT}",
            "access_log": "${WEB_SERVER_ACCESS_LOG}",
        },
        "fetch": {"output": "${FETCH_OUTPUT}"},
    }


def _merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _parse_bool(value: Any) -> Optional[bool]:
    """Interpret a flag value; None when it is not a recognised boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return None


def _as_bool(value: Any, default: bool) -> bool:
    parsed = _parse_bool(value)
    return default if parsed is None else parsed


@dataclass(frozen=True)
class RelaySettings:
    """Validated, immutable runtime settings."""

    ics_url: str
    access_token: Optional[str] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    upstream_timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    fetch_output: str = DEFAULT_FETCH_OUTPUT
    access_log: bool = False

    @property
    def auth_enabled(self) -> bool:
        """Authentication is on whenever a token is configured."""
        return self.access_token is not None


class Config:
    """Configuration manager with validation and defaults."""

    config_path: Optional[str] = None

    def __init__(self, config_data: dict):
        """Initialize configuration from dictionary."""
        _load_env_once()
        self._data = config_data
        self.config_path = None

    @classmethod
    def from_file(cls, config_path: str) -> "Config":
        """Load configuration from a YAML file layered over the defaults."""
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(
                [f"Configuration file must contain a mapping: {config_path}"]
            )

        instance = cls(_merge(_default_data(), data))
        instance.config_path = str(path)
        return instance

    @classmethod
    def from_defaults(cls) -> "Config":
        """Create configuration driven purely by environment variables."""
        instance = cls(_default_data())
        instance.config_path = "defaults"
        return instance

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation."""
        value = self._data

        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        # ${VARIABLE} expansion; unset or empty variables fall back to default
        if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
            expanded_value = os.getenv(value[2:-1])
            if expanded_value is None or expanded_value == "":
                return default
            return expanded_value

        if value is None:
            return default
        return value

    @property
    def ics_url(self) -> str:
        """Get upstream calendar URL."""
        return str(self.get("upstream.url", "")).strip()

    @property
    def access_token(self) -> Optional[str]:
        """Get the shared access token."""
        token = self.get("auth.access_token")
        return str(token) if token is not None else None

    @property
    def auth_enabled(self) -> bool:
        """Check if token authentication is enabled."""
        return _as_bool(self.get("auth.enabled", True), True)

    @property
    def web_host(self) -> str:
        """Get web server host."""
        return str(self.get("web_server.host", DEFAULT_HOST))

    @property
    def web_port(self) -> Any:
        """Get web server port (unvalidated)."""
        return self.get("web_server.port", DEFAULT_PORT)

    @property
    def web_access_log(self) -> bool:
        """Check if uvicorn access logging is enabled."""
        return _as_bool(self.get("web_server.access_log", False), False)

    @property
    def upstream_timeout(self) -> Any:
        """Get upstream fetch timeout in seconds (unvalidated)."""
        return self.get("upstream.timeout", DEFAULT_TIMEOUT)

    @property
    def user_agent(self) -> str:
        """Get the User-Agent presented to the upstream server."""
        return str(self.get("upstream.user_agent", DEFAULT_USER_AGENT))

    @property
    def fetch_output(self) -> str:
        """Get output path for the one-shot fetch command."""
        return str(self.get("fetch.output", DEFAULT_FETCH_OUTPUT))

    def to_settings(self, require_token: Optional[bool] = None) -> RelaySettings:
        """
        Validate the configuration and freeze it.

        Args:
            require_token: Whether ACCESS_TOKEN must be present. Defaults to
                the configured ``auth.enabled`` flag.

        Raises:
            ConfigurationError: listing every problem found.
        """
        if require_token is None:
            require_token = self.auth_enabled

        problems: list[str] = []

        ics_url = self.ics_url
        if not ics_url:
            problems.append("ICS_URL is required")
        else:
            parsed = urlparse(ics_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                problems.append(f"ICS_URL must be an absolute http(s) URL: {ics_url}")

        token = self.access_token
        if require_token and not token:
            problems.append(
                "ACCESS_TOKEN is required (or disable authentication explicitly)"
            )

        port = DEFAULT_PORT
        try:
            port = int(str(self.web_port).strip())
            if not 1 <= port <= 65535:
                problems.append(f"PORT must be between 1 and 65535, got {port}")
        except ValueError:
            problems.append(f"PORT must be an integer, got {self.web_port!r}")

        timeout = DEFAULT_TIMEOUT
        try:
            timeout = float(str(self.upstream_timeout).strip())
            if timeout <= 0:
                problems.append(f"UPSTREAM_TIMEOUT must be positive, got {timeout}")
        except ValueError:
            problems.append(
                f"UPSTREAM_TIMEOUT must be a number, got {self.upstream_timeout!r}"
            )

        for key, name in (
            ("auth.enabled", "AUTH_ENABLED"),
            ("web_server.access_log", "WEB_SERVER_ACCESS_LOG"),
        ):
            raw = self.get(key)
            if raw is not None and _parse_bool(raw) is None:
                problems.append(f"{name} must be true or false, got {raw!r}")

        if problems:
            raise ConfigurationError(problems)

        return RelaySettings(
            ics_url=ics_url,
            access_token=token if require_token else None,
            host=self.web_host,
            port=port,
            upstream_timeout=timeout,
            user_agent=self.user_agent,
            fetch_output=self.fetch_output,
            access_log=self.web_access_log,
        )
