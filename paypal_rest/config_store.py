"""Config Store - Loads and holds the SDK configuration.

Handles loading YAML configuration (from a stream, a file, or an in-memory
mapping) with environment variable substitution, and exposes typed views
of it to the request pipeline.

Keys are flat and dotted (``service.EndPoint``, ``http.ReadTimeOut``).
Nested YAML mappings are flattened, so both spellings below are equivalent:

    service.EndPoint: https://api.sandbox.paypal.com/

    service:
      EndPoint: https://api.sandbox.paypal.com/
"""

from __future__ import annotations

import logging
import os
import re
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import IO, Any, Union

import yaml

from paypal_rest.models import HttpConfiguration, HttpMethod, ProxyConfig

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the loaded configuration cannot be used."""


class ConfigLoadError(ConfigError):
    """Raised when configuration loading fails."""


ConfigSource = Union[IO[bytes], IO[str], str, os.PathLike, Mapping[str, Any]]

# Bundled configuration used when nothing was loaded explicitly
DEFAULT_CONFIG_PATH = Path(__file__).parent / "sdk_config.yaml"

# Endpoints selected by ``mode`` when service.EndPoint is not set
MODE_ENDPOINTS = {
    "sandbox": "https://api.sandbox.paypal.com/",
    "live": "https://api.paypal.com/",
}

ENDPOINT = "service.EndPoint"
MODE = "mode"
CONNECTION_TIMEOUT = "http.ConnectionTimeOut"
READ_TIMEOUT = "http.ReadTimeOut"
MAX_CONNECTION = "http.MaxConnection"
USE_PROXY = "http.UseProxy"
PROXY_HOST = "http.ProxyHost"
PROXY_PORT = "http.ProxyPort"
PROXY_USERNAME = "http.ProxyUserName"
PROXY_PASSWORD = "http.ProxyPassword"
VERIFY_SSL = "http.VerifySSL"
CA_BUNDLE = "http.CABundle"
CLIENT_CERT = "http.ClientCert"
CLIENT_KEY = "http.ClientKey"

_ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")
_TRUE_VALUES = {"true", "yes", "on", "1"}
_FALSE_VALUES = {"false", "no", "off", "0", ""}


def parse_config(source: ConfigSource) -> dict[str, str]:
    """Parse a configuration source into a flat key/value mapping.

    Args:
        source: A readable stream (bytes or text), a filesystem path, or a
            mapping. Mappings are copied as-is (values stringified) and
            never fail; streams and files are parsed as YAML with
            ${ENV_VAR} substitution.

    Returns:
        Flat mapping of dotted keys to string values.

    Raises:
        ConfigLoadError: If the file is missing or unreadable, the YAML is
            malformed, the document is not a mapping, or a referenced
            environment variable is not set.
    """
    if isinstance(source, Mapping):
        return _flatten(source)

    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        if not path.exists():
            raise ConfigLoadError(f"File doesn't exist: {path.absolute()}")
        try:
            with open(path, "r", encoding="utf-8") as f:
                return _parse_stream(f)
        except OSError as e:
            raise ConfigLoadError(f"Cannot read config file {path}: {e}") from e

    if not hasattr(source, "read"):
        raise ConfigLoadError(
            f"Unsupported config source type: {type(source).__name__}"
        )
    return _parse_stream(source)


def _parse_stream(stream: IO[Any]) -> dict[str, str]:
    try:
        raw_config = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML in config: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigLoadError(f"Cannot read config stream: {e}") from e

    if raw_config is None:
        return {}
    if not isinstance(raw_config, dict):
        raise ConfigLoadError("Config must be a YAML mapping")

    flat = _flatten(raw_config)
    return {key: _substitute_string(value) for key, value in flat.items()}


def _flatten(data: Mapping[Any, Any], prefix: str = "") -> dict[str, str]:
    """Flatten nested mappings into dotted keys with string values."""
    result: dict[str, str] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            result.update(_flatten(value, f"{full_key}."))
        else:
            result[full_key] = _stringify(value)
    return result


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_stringify(item) for item in value)
    return str(value)


def _substitute_string(s: str) -> str:
    """Substitute ${ENV_VAR} patterns. Raises ConfigLoadError if env var is not set."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigLoadError(f"Environment variable '{var_name}' is not set")
        return value

    return _ENV_VAR_PATTERN.sub(replacer, s)


class ConfigStore:
    """Holds one configuration, loaded at most once implicitly.

    The store starts uninitialized. ``load()`` replaces the configuration
    wholesale; ``ensure_initialized()`` loads the default source only if
    nothing has been loaded yet. A failed load leaves the previous state in
    effect.

    Usage:
        store = ConfigStore()
        store.load(Path("sdk_config.yaml"))
        store.base_url  # 'https://api.sandbox.paypal.com/'
    """

    def __init__(self, default_source: ConfigSource | None = None) -> None:
        """Initialize an empty store.

        Args:
            default_source: Source used by ensure_initialized(). Defaults to
                the bundled sdk_config.yaml.
        """
        self._default_source = default_source if default_source is not None else DEFAULT_CONFIG_PATH
        self._values: dict[str, str] = {}
        self._initialized = False
        # Re-entrant so ensure_initialized() can call load() while holding it
        self._lock = threading.RLock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    def load(self, source: ConfigSource) -> None:
        """Parse source and replace the current configuration with it.

        Raises:
            ConfigLoadError: If parsing fails. Logged at ERROR level first.
        """
        with self._lock:
            try:
                values = parse_config(source)
            except ConfigLoadError as e:
                logger.error("Failed to load configuration: %s", e, exc_info=True)
                raise
            self._values = values
            self._initialized = True
        logger.debug("Loaded configuration with %d keys", len(values))

    def ensure_initialized(self) -> None:
        """Load the default source if no configuration has been loaded yet."""
        if self._initialized:
            return
        with self._lock:
            # Another thread may have finished loading while we waited
            if self._initialized:
                return
            logger.debug("No configuration loaded, using default source")
            self.load(self._default_source)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._values.get(key, default)

    def as_dict(self) -> dict[str, str]:
        """Copy of the current configuration."""
        return dict(self._values)

    @property
    def base_url(self) -> str:
        """Configured endpoint, as written.

        Resource paths are resolved against it as relative references, so an
        endpoint without a trailing slash has its last segment replaced.
        """
        values = self._values
        endpoint = values.get(ENDPOINT)
        if not endpoint:
            mode = values.get(MODE, "").lower()
            endpoint = MODE_ENDPOINTS.get(mode)
            if endpoint is None:
                raise ConfigError(
                    f"No '{ENDPOINT}' configured and mode '{mode}' is not one of "
                    f"{', '.join(sorted(MODE_ENDPOINTS))}"
                )
        return endpoint

    def http_configuration(self, method: HttpMethod | str = HttpMethod.GET) -> HttpConfiguration:
        """Build the connection parameters for a call using method."""
        proxy = None
        if self._get_bool(USE_PROXY, False):
            host = self.get(PROXY_HOST)
            if not host:
                raise ConfigError(f"'{USE_PROXY}' is enabled but '{PROXY_HOST}' is not set")
            proxy = ProxyConfig(
                host=host,
                port=self._get_int(PROXY_PORT) or 8080,
                username=self.get(PROXY_USERNAME) or None,
                password=self.get(PROXY_PASSWORD) or None,
            )

        return HttpConfiguration(
            endpoint_url=self.base_url,
            http_method=HttpMethod.coerce(method),
            connect_timeout=self._get_millis(CONNECTION_TIMEOUT),
            read_timeout=self._get_millis(READ_TIMEOUT),
            max_connections=self._get_int(MAX_CONNECTION),
            proxy=proxy,
            verify_ssl=self._get_bool(VERIFY_SSL, True),
            ca_bundle=self.get(CA_BUNDLE) or None,
            cert=self.get(CLIENT_CERT) or None,
            key=self.get(CLIENT_KEY) or None,
        )

    def _get_int(self, key: str) -> int | None:
        raw = self.get(key)
        if raw is None or raw.strip() == "":
            return None
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"'{key}' must be an integer, got {raw!r}") from None

    def _get_millis(self, key: str) -> float | None:
        millis = self._get_int(key)
        if millis is None or millis <= 0:
            return None
        return millis / 1000.0

    def _get_bool(self, key: str, default: bool) -> bool:
        raw = self.get(key)
        if raw is None:
            return default
        lowered = raw.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        raise ConfigError(f"'{key}' must be a boolean, got {raw!r}")
