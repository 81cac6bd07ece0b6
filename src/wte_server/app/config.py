"""
Unified server configuration for the web terminal exec server (wte_server).

This module centralizes:
- Defaults for all server settings
- Loading from environment variables
- Optional .env file hydration via python-dotenv (never overrides process env)
- Duration parsing for IDLE_TIMEOUT / STOP_RETRY_PERIOD

Usage:
    from wte_server.app.config import get_settings

    settings = get_settings()
    print(settings.devworkspace_name)

Notes:
- Environment variables always take precedence over the .env file.
- The configuration is built once at startup and passed explicitly into the
  components that need it; request handling never reads os.environ.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from wte_server.app import __version__

logger = logging.getLogger(__name__)

__all__ = [
    "ConfigError",
    "ServerConfig",
    "get_settings",
    "parse_duration",
]


class ConfigError(ValueError):
    """Raised when the server configuration is missing or invalid."""


# ----------------------------
# Environment variable names
# ----------------------------

URL_ENV = "API_URL"
AUTHENTICATED_USER_ID_ENV = "AUTHENTICATED_USER_ID"
POD_SELECTOR_ENV = "POD_SELECTOR"
IDLE_TIMEOUT_ENV = "IDLE_TIMEOUT"
STOP_RETRY_PERIOD_ENV = "STOP_RETRY_PERIOD"
DEVWORKSPACE_ID_ENV = "DEVWORKSPACE_ID"
DEVWORKSPACE_NAME_ENV = "DEVWORKSPACE_NAME"
DEVWORKSPACE_NAMESPACE_ENV = "DEVWORKSPACE_NAMESPACE"

DEFAULT_URL = ":4444"
DEFAULT_IDLE_TIMEOUT = "5m"
DEFAULT_STOP_RETRY_PERIOD = "10s"
DEFAULT_EXEC_TIMEOUT_SECONDS = 30
DEFAULT_MAX_BODY_BYTES = 1 << 20  # 1 MiB
DEFAULT_TLS_CERT_FILE = "/var/serving-cert/tls.crt"
DEFAULT_TLS_KEY_FILE = "/var/serving-cert/tls.key"
DEFAULT_POD_SELECTOR_FMT = "controller.devfile.io/devworkspace_id={}"


# ----------------------------
# Helpers: env, parsing, types
# ----------------------------

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """
    Parse a duration string into seconds.

    Accepts Go-style durations ('30s', '15m', '1h30m', '500ms'), bare numbers
    interpreted as seconds ('45', '-1') and an optional leading sign.
    """
    s = (value or "").strip()
    if not s:
        raise ConfigError("empty duration")
    sign = 1.0
    if s[0] in "+-":
        sign = -1.0 if s[0] == "-" else 1.0
        s = s[1:]
    try:
        return sign * float(s)
    except ValueError:
        pass
    pos = 0
    total = 0.0
    for m in _DURATION_PART_RE.finditer(s):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos == 0 or pos != len(s):
        raise ConfigError(f"invalid duration '{value}'")
    return sign * total


def _str2bool(val: str | None, default: bool = False) -> bool:
    if val is None:
        return default
    s = val.strip().lower()
    return s in ("1", "true", "yes", "y", "on")


def _int_from_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"invalid value for {key}: '{raw}' is not an integer")


def _duration_from_env(env: Mapping[str, str], key: str, default: str) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        raw = default
    else:
        logger.info("Read value %s from environment variable %s", raw, key)
    try:
        return parse_duration(raw)
    except ConfigError as exc:
        raise ConfigError(f"invalid value for {key}: {exc}")


def _load_env_file(env_file: Optional[str | Path]) -> None:
    """
    Hydrate os.environ from an optional .env file without overriding
    variables that are already set.
    """
    path = Path(env_file or os.getenv("WTE_ENV_FILE", ".env.server"))
    if path.is_file():
        load_dotenv(path, override=False)


# ----------------------------
# Unified configuration object
# ----------------------------

@dataclass(frozen=True)
class ServerConfig:
    """
    Unified configuration for the web terminal exec server.

    All fields are immutable once created. Use from_env() to construct an instance.
    """

    # Listener
    listen_url: str

    # Identity of the managed DevWorkspace
    devworkspace_name: str
    devworkspace_namespace: str
    devworkspace_id: str
    pod_selector: str

    # Only this OpenShift user may use the terminal
    authenticated_user_id: str

    # Idling (seconds); negative idle timeout disables idling
    idle_timeout_seconds: float
    stop_retry_period_seconds: float

    # Remote exec and request handling
    exec_timeout_seconds: int
    max_body_bytes: int

    # TLS
    use_tls: bool
    tls_cert_file: str
    tls_key_file: str

    # Values taken from the pod environment
    kubernetes_service_host: Optional[str] = None
    kubernetes_service_port: Optional[str] = None
    hostname: Optional[str] = None

    # Service metadata
    log_level: str = "INFO"
    service_version: str = __version__

    @staticmethod
    def from_env(
        environ: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
        env_file: Optional[str | Path] = None,
    ) -> "ServerConfig":
        """
        Construct ServerConfig with values pulled from the environment,
        optionally hydrated by a .env file if dotenv=True.

        Raises:
            ConfigError if a required value is missing or a value is invalid.
        """
        if environ is None:
            if dotenv:
                _load_env_file(env_file)
            environ = os.environ

        listen_url = environ.get(URL_ENV) or DEFAULT_URL

        name = environ.get(DEVWORKSPACE_NAME_ENV, "")
        namespace = environ.get(DEVWORKSPACE_NAMESPACE_ENV, "")
        workspace_id = environ.get(DEVWORKSPACE_ID_ENV, "")
        if not name:
            raise ConfigError(f"environment variable {DEVWORKSPACE_NAME_ENV} must be set")
        if not namespace:
            raise ConfigError(f"environment variable {DEVWORKSPACE_NAMESPACE_ENV} must be set")
        if not workspace_id:
            raise ConfigError(f"environment variable {DEVWORKSPACE_ID_ENV} must be set")

        pod_selector = environ.get(POD_SELECTOR_ENV) or DEFAULT_POD_SELECTOR_FMT.format(workspace_id)

        use_tls = _str2bool(environ.get("USE_TLS"), default=True)
        if not use_tls:
            logger.warning("USE_TLS is kept for backwards compatibility and must be set to true. Ignoring configured value")
            use_tls = True

        cfg = ServerConfig(
            listen_url=listen_url,
            devworkspace_name=name,
            devworkspace_namespace=namespace,
            devworkspace_id=workspace_id,
            pod_selector=pod_selector,
            authenticated_user_id=environ.get(AUTHENTICATED_USER_ID_ENV, ""),
            idle_timeout_seconds=_duration_from_env(environ, IDLE_TIMEOUT_ENV, DEFAULT_IDLE_TIMEOUT),
            stop_retry_period_seconds=_duration_from_env(environ, STOP_RETRY_PERIOD_ENV, DEFAULT_STOP_RETRY_PERIOD),
            exec_timeout_seconds=_int_from_env(environ, "EXEC_TIMEOUT_SECONDS", DEFAULT_EXEC_TIMEOUT_SECONDS),
            max_body_bytes=_int_from_env(environ, "MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
            use_tls=use_tls,
            tls_cert_file=environ.get("TLS_CERT_FILE") or DEFAULT_TLS_CERT_FILE,
            tls_key_file=environ.get("TLS_KEY_FILE") or DEFAULT_TLS_KEY_FILE,
            kubernetes_service_host=environ.get("KUBERNETES_SERVICE_HOST") or None,
            kubernetes_service_port=environ.get("KUBERNETES_SERVICE_PORT") or None,
            hostname=environ.get("HOSTNAME") or None,
            log_level=environ.get("LOG_LEVEL") or "INFO",
            service_version=environ.get("WTE_VERSION") or __version__,
        )
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if not self.authenticated_user_id:
            raise ConfigError(f"authenticated user ID must be specified via {AUTHENTICATED_USER_ID_ENV}")
        if self.idling_enabled and self.stop_retry_period_seconds <= 0:
            raise ConfigError(f"invalid value for {STOP_RETRY_PERIOD_ENV}: must be greater than zero if idling is enabled")
        if self.exec_timeout_seconds <= 0:
            raise ConfigError("EXEC_TIMEOUT_SECONDS must be greater than zero")
        if self.max_body_bytes <= 0:
            raise ConfigError("MAX_BODY_BYTES must be greater than zero")
        self.listen_address()

    # ----------------------------
    # Derived helpers / utilities
    # ----------------------------

    @property
    def idling_enabled(self) -> bool:
        return self.idle_timeout_seconds >= 0

    def listen_address(self) -> Tuple[str, int]:
        """
        Split API_URL ('host:port' or ':port') into a (host, port) pair.
        An empty host binds all interfaces.
        """
        host, sep, port = self.listen_url.rpartition(":")
        if not sep or not port.isdigit():
            raise ConfigError(f"invalid value for {URL_ENV}: '{self.listen_url}' (expected host:port)")
        host = host.strip("[]") or "0.0.0.0"
        return host, int(port)

    def kubernetes_server_url(self) -> Optional[str]:
        """
        API server URL for generated kubeconfigs, or None if the service
        host/port are not known.
        """
        if not self.kubernetes_service_host or not self.kubernetes_service_port:
            return None
        host = self.kubernetes_service_host
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"https://{host}:{self.kubernetes_service_port}"

    def log_summary(self, log: Optional[logging.Logger] = None) -> None:
        """
        Log the effective configuration (contains no credentials).
        """
        log = log or logger
        log.info("Web Terminal Exec configuration:")
        log.info("==> Log level: %s", self.log_level)
        log.info("==> Application url: %s", self.listen_url)
        log.info("==> Authenticated user ID: %s", self.authenticated_user_id)
        log.info("==> DevWorkspace: %s/%s (id %s)", self.devworkspace_namespace, self.devworkspace_name, self.devworkspace_id)
        log.info("==> Pod selector: %s", self.pod_selector)
        log.info("==> Idle timeout: %ss", self.idle_timeout_seconds)
        log.info("==> Stop retry period: %ss", self.stop_retry_period_seconds)


# ----------------------------
# Cached accessor
# ----------------------------

@lru_cache(maxsize=1)
def get_settings() -> ServerConfig:
    """
    Cached settings accessor for process bootstrap.
    """
    return ServerConfig.from_env(dotenv=True)
