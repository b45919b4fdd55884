"""Harness settings.

Settings come from three layers, each overriding the previous one: the
dataclass defaults, a YAML file (``~/.webssotest/config.yaml`` unless
another path is given) and ``WEBSSOTEST_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".webssotest"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

ENV_PREFIX = "WEBSSOTEST_"


@dataclass
class EndpointSettings:
    """Where the mock capture endpoint listens.

    The endpoint is mounted at the path of the suite's mock endpoint URL.
    ``port`` replaces the port taken from that URL, which is only useful
    behind a proxy or port mapping.
    """

    host: str = "localhost"
    port: int | None = None
    capture_timeout: float = 5.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EndpointSettings:
        port = data.get("port")
        return cls(
            host=data.get("host", cls.host),
            port=None if port is None else int(port),
            capture_timeout=float(data.get("capture_timeout", cls.capture_timeout)),
        )


@dataclass
class ClientSettings:
    """How the web client talks to the target."""

    verify_tls: bool = True
    timeout: float = 30.0
    max_auto_posts: int = 5

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientSettings:
        return cls(
            verify_tls=bool(data.get("verify_tls", cls.verify_tls)),
            timeout=float(data.get("timeout", cls.timeout)),
            max_auto_posts=int(data.get("max_auto_posts", cls.max_auto_posts)),
        )


@dataclass
class LoggingSettings:
    level: str = "INFO"
    trace: bool = False
    log_file: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoggingSettings:
        return cls(
            level=str(data.get("level", cls.level)).upper(),
            trace=bool(data.get("trace", cls.trace)),
            log_file=data.get("log_file"),
        )


@dataclass
class HarnessConfig:
    """All harness settings, plus the file they were read from."""

    endpoint: EndpointSettings = field(default_factory=EndpointSettings)
    client: ClientSettings = field(default_factory=ClientSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], config_path: Path | None = None) -> HarnessConfig:
        return cls(
            endpoint=EndpointSettings.from_dict(data.get("endpoint") or {}),
            client=ClientSettings.from_dict(data.get("client") or {}),
            logging=LoggingSettings.from_dict(data.get("logging") or {}),
            config_path=config_path,
        )

    def to_dict(self) -> dict[str, Any]:
        """The YAML-serializable settings; ``config_path`` is left out."""
        data = asdict(self)
        del data["config_path"]
        return data

    def save(self, path: Path | None = None) -> None:
        """Write the settings as YAML, to ``path`` or where they were loaded from."""
        target = path or self.config_path or DEFAULT_CONFIG_FILE
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(yaml.safe_dump(self.to_dict(), default_flow_style=False), encoding="utf-8")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes", "on")


# variable suffix -> (section, attribute, converter)
ENV_OVERRIDES: dict[str, tuple[str, str, Callable[[str], Any]]] = {
    "HOST": ("endpoint", "host", str),
    "PORT": ("endpoint", "port", int),
    "CAPTURE_TIMEOUT": ("endpoint", "capture_timeout", float),
    "VERIFY_TLS": ("client", "verify_tls", _as_bool),
    "TIMEOUT": ("client", "timeout", float),
    "LOG_LEVEL": ("logging", "level", str.upper),
    "TRACE": ("logging", "trace", _as_bool),
    "LOG_FILE": ("logging", "log_file", str),
}


def _read_file(path: Path) -> HarnessConfig | None:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError("top level is not a mapping")
        return HarnessConfig.from_dict(data, config_path=path)
    except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Ignoring invalid config file {path}: {e}")
        return None


def _apply_environment(config: HarnessConfig) -> None:
    for suffix, (section, attribute, convert) in ENV_OVERRIDES.items():
        name = ENV_PREFIX + suffix
        raw = os.environ.get(name)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError:
            logger.warning(f"Ignoring {name}={raw!r}: not a valid {attribute}")
            continue
        setattr(getattr(config, section), attribute, value)


def load_config(config_path: Path | None = None) -> HarnessConfig:
    """Load the harness settings.

    A missing file is not an error; an unreadable or malformed one is
    logged and skipped, so the defaults and the environment still apply.
    """
    path = config_path or DEFAULT_CONFIG_FILE
    config = (_read_file(path) if path.exists() else None) or HarnessConfig()
    _apply_environment(config)
    return config


def get_default_config_yaml() -> str:
    """Get the default config.yaml content as a string.

    Useful for generating example configuration files.
    """
    return """\
# WebSSOTest Configuration File
# Environment variables override these settings (prefix: WEBSSOTEST_)

endpoint:
  # Interface the mock capture endpoint binds to
  host: "localhost"

  # Port override; by default the port of the suite's mock endpoint URL is used
  # port: 8080

  # Seconds to wait for the target's message after the login flow returns
  capture_timeout: 5.0

client:
  # Verify TLS certificates of the target (disable with --insecure)
  verify_tls: true

  # Request timeout in seconds
  timeout: 30.0

  # HTTP-POST binding forms submitted automatically after one navigation
  max_auto_posts: 5

logging:
  # ERROR, INFO, DEBUG or TRACE
  level: "INFO"

  # Log full SAML messages and credentials (TRACE level only)
  trace: false

  # Also write logs to this file
  # log_file: ~/.webssotest/webssotest.log
"""
