# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Client configuration.

A ``ClientConfig`` can be built directly or loaded from a YAML file.
The default location follows the XDG Base Directory Specification:

    ``$XDG_CONFIG_HOME/s3request/client.yaml``
    (typically ``~/.config/s3request/client.yaml``)

``!env`` tags resolve values from environment variables, after ``.env``
files have been loaded::

    endpoint: s3.amazonaws.com
    region: us-west-2
    use_ssl: true
    credentials:
      access_key: !env S3_ACCESS_KEY
      secret_key: !env S3_SECRET_KEY
      session_token: !env S3_SESSION_TOKEN
    trace: false
    timeout: 30
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from platformdirs import user_config_path

from s3request.dotenv_loader import load_dotenv_once
from s3request.signing import Credentials


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "s3request"

DEFAULT_USER_AGENT = "s3request/0.1.0 (Python)"

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


class ConfigError(Exception):
    """Invalid or missing configuration."""


def get_config_path() -> Path:
    """Return the default config file path (XDG)."""
    return user_config_path(_APP_NAME) / "client.yaml"


def get_dotenv_path() -> Path:
    """Return the default ``.env`` file path inside the XDG config dir."""
    return user_config_path(_APP_NAME) / ".env"


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _EnvRef:
    """Value of a ``!env NAME`` tag, looked up when the config is built."""

    name: str

    def lookup(self) -> str | None:
        return os.environ.get(self.name)


def _yaml_loader() -> type[yaml.SafeLoader]:
    """Return a safe loader class with the ``!env`` tag registered."""

    class ClientConfigLoader(yaml.SafeLoader):
        pass

    def env_tag(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvRef:
        name = loader.construct_scalar(node)  # type: ignore[arg-type]
        return _EnvRef(str(name))

    ClientConfigLoader.add_constructor("!env", env_tag)
    return ClientConfigLoader


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _to_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _BOOL_TRUTHY or word in _BOOL_FALSY:
        return word in _BOOL_TRUTHY
    raise ConfigError(f"Expected a boolean, got {value!r}")


def _setting(
    key: str,
    value: object,
    kind: type[Any],
    default: Any = None,
    *,
    required: bool = False,
) -> Any:
    """Turn one raw YAML value into a typed setting.

    ``!env`` references are looked up first.  An absent value (or an
    unset variable) yields *default*, or ``ConfigError`` when *required*.
    """
    if isinstance(value, _EnvRef):
        env_name = value.name
        value = value.lookup()
        if value is None and required:
            raise ConfigError(f"'{key}' reads ${env_name}, which is not set")
    if value is None:
        if required:
            raise ConfigError(f"'{key}' is required")
        return default

    if kind is bool:
        return _to_bool(value)
    if isinstance(value, kind):
        return value
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(
            f"'{key}' must be {kind.__name__}, got {value!r}"
        ) from e


# ---------------------------------------------------------------------------
# Client configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClientConfig:
    """Immutable client settings.

    Attributes:
        endpoint: Endpoint host name, e.g. ``s3.amazonaws.com`` or
            ``play.min.io`` (no scheme, path or port).
        access_key: Access key ID.  Empty together with ``secret_key``
            for anonymous access.
        secret_key: Secret access key.
        session_token: STS session token for temporary credentials.
        use_ssl: Talk HTTPS instead of HTTP.
        port: Explicit port; the scheme default when ``None``.
        region: Default region.  Used as the bucket region when no
            discovery collaborator is given.
        user_agent: ``user-agent`` header value.
        enable_trace: Log every request and response at DEBUG level.
        timeout_seconds: Transport timeout for the default transport.
    """

    endpoint: str
    access_key: str = ""
    secret_key: str = ""
    session_token: str | None = None
    use_ssl: bool = True
    port: int | None = None
    region: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    enable_trace: bool = False
    timeout_seconds: float = 60.0

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not self.endpoint:
            raise ConfigError("Endpoint must not be empty")
        if "://" in self.endpoint or "/" in self.endpoint:
            raise ConfigError(
                f"Endpoint must be a host name without scheme or path: "
                f"{self.endpoint}"
            )
        if ":" in self.endpoint:
            raise ConfigError(
                f"Endpoint must not include a port, use 'port': "
                f"{self.endpoint}"
            )
        if self.port is not None and not 1 <= self.port <= 65535:
            raise ConfigError(f"Port must be in 1..65535: {self.port}")
        if self.timeout_seconds <= 0:
            raise ConfigError(
                f"Timeout must be positive: {self.timeout_seconds}"
            )

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            access_key=self.access_key,
            secret_key=self.secret_key,
            session_token=self.session_token or None,
        )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "ClientConfig":
        """Load configuration from a YAML file.

        Values tagged with ``!env VAR_NAME`` are resolved from the
        environment at load time.  ``.env`` files are loaded first.

        Args:
            config_path: Path to YAML config file.  Defaults to
                ``~/.config/s3request/client.yaml`` (XDG).

        Returns:
            ClientConfig instance.

        Raises:
            ConfigError: If the file is missing or values are invalid.
        """
        load_dotenv_once()

        if config_path is None:
            config_path = get_config_path()

        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            raw = yaml.load(f, Loader=_yaml_loader())

        if not isinstance(raw, dict):
            raise ConfigError(
                f"Config file must be a YAML mapping: {config_path}"
            )

        config = cls._from_raw(raw)
        logger.debug(
            "Client config loaded from %s: endpoint=%s, ssl=%s",
            config_path,
            config.endpoint,
            config.use_ssl,
        )
        return config

    @classmethod
    def _from_raw(cls, raw: dict) -> "ClientConfig":
        """Build config from parsed (but unresolved) YAML dict."""
        credentials = raw.get("credentials") or {}
        if not isinstance(credentials, dict):
            raise ConfigError("'credentials' must be a YAML mapping")

        def setting(key: str, *args: Any, **kwargs: Any) -> Any:
            return _setting(key, raw.get(key), *args, **kwargs)

        def secret(key: str, *args: Any) -> Any:
            return _setting(f"credentials.{key}", credentials.get(key), *args)

        return cls(
            endpoint=setting("endpoint", str, required=True),
            access_key=secret("access_key", str, ""),
            secret_key=secret("secret_key", str, ""),
            session_token=secret("session_token", str),
            use_ssl=setting("use_ssl", bool, True),
            port=setting("port", int),
            region=setting("region", str),
            user_agent=setting("user_agent", str, DEFAULT_USER_AGENT),
            enable_trace=setting("trace", bool, False),
            timeout_seconds=setting("timeout", float, 60.0),
        )
