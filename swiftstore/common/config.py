from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

ENV_FILE = Path(".env")

DEFAULT_CHUNK_SIZE = 1024 * 1024 * 1024
DEFAULT_RETRIES = 3
DEFAULT_CONNECT_TIMEOUT = "10s"
DEFAULT_TIMEOUT = "5m"

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class ConfigError(ValueError):
    """Raised when Swift settings are missing or malformed."""


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _first_env(*names: str) -> str:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value.strip()
    return ""


def _as_int(value: str | None, default: int, *, name: str) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def parse_duration(value: str) -> float:
    """Parse a Go-style duration string such as ``"1m30s"`` into seconds.

    A bare ``"0"`` is accepted. Negative durations are rejected.
    """
    text = (value or "").strip()
    if text == "0":
        return 0.0
    if not text:
        raise ConfigError("duration must not be empty")

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos != len(text):
        raise ConfigError(f"invalid duration {value!r}")
    return total


@dataclass
class SwiftSettings:
    """Connection and container settings for the Swift object store.

    Field names match the YAML configuration keys.
    """

    auth_version: int = 0
    auth_url: str = ""
    username: str = ""
    user_domain_name: str = ""
    user_domain_id: str = ""
    user_id: str = ""
    password: str = field(default="", repr=False)
    domain_id: str = ""
    domain_name: str = ""
    project_id: str = ""
    project_name: str = ""
    project_domain_id: str = ""
    project_domain_name: str = ""
    region_name: str = ""
    container_name: str = ""
    large_object_chunk_size: int = DEFAULT_CHUNK_SIZE
    large_object_segments_container_name: str = ""
    retries: int = DEFAULT_RETRIES
    connect_timeout: str = DEFAULT_CONNECT_TIMEOUT
    timeout: str = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        for name in ("auth_version", "large_object_chunk_size", "retries"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        if self.large_object_chunk_size <= 0:
            raise ConfigError("large_object_chunk_size must be positive")
        if self.retries < 0:
            raise ConfigError("retries must not be negative")
        for name in ("connect_timeout", "timeout"):
            value = getattr(self, name)
            if value:
                parse_duration(str(value))

    @property
    def connect_timeout_seconds(self) -> float | None:
        if not self.connect_timeout:
            return None
        return parse_duration(str(self.connect_timeout))

    @property
    def timeout_seconds(self) -> float | None:
        if not self.timeout:
            return None
        return parse_duration(str(self.timeout))

    @property
    def segments_container_name(self) -> str:
        return self.large_object_segments_container_name or self.container_name

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "SwiftSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown swift config keys: {', '.join(unknown)}")
        values = {key: value for key, value in data.items() if value is not None}
        try:
            return cls(**values)
        except TypeError as exc:
            raise ConfigError(f"invalid swift config: {exc}") from exc

    @classmethod
    def from_yaml(cls, content: str | bytes) -> "SwiftSettings":
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ConfigError(f"swift parse configs: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("swift config must be a mapping")
        return cls.from_mapping(data)

    @classmethod
    def from_environment(cls) -> "SwiftSettings":
        _load_env_file()
        return cls(
            auth_version=_as_int(
                _first_env("OS_AUTH_VERSION", "ST_AUTH_VERSION", "OS_IDENTITY_API_VERSION"),
                0,
                name="OS_AUTH_VERSION",
            ),
            auth_url=_first_env("OS_AUTH_URL", "ST_AUTH"),
            username=_first_env("OS_USERNAME", "ST_USER"),
            user_id=_first_env("OS_USER_ID"),
            password=_first_env("OS_PASSWORD", "ST_KEY"),
            user_domain_name=_first_env("OS_USER_DOMAIN_NAME"),
            user_domain_id=_first_env("OS_USER_DOMAIN_ID"),
            domain_id=_first_env("OS_DOMAIN_ID"),
            domain_name=_first_env("OS_DOMAIN_NAME"),
            project_id=_first_env("OS_PROJECT_ID", "OS_TENANT_ID"),
            project_name=_first_env("OS_PROJECT_NAME", "OS_TENANT_NAME"),
            project_domain_id=_first_env("OS_PROJECT_DOMAIN_ID"),
            project_domain_name=_first_env("OS_PROJECT_DOMAIN_NAME"),
            region_name=_first_env("OS_REGION_NAME"),
            container_name=_first_env("OS_CONTAINER_NAME"),
            large_object_segments_container_name=_first_env(
                "SWIFT_SEGMENTS_CONTAINER_NAME"
            ),
            large_object_chunk_size=_as_int(
                os.environ.get("SWIFT_CHUNK_SIZE"),
                DEFAULT_CHUNK_SIZE,
                name="SWIFT_CHUNK_SIZE",
            ),
            retries=_as_int(
                os.environ.get("SWIFT_RETRIES"), DEFAULT_RETRIES, name="SWIFT_RETRIES"
            ),
            connect_timeout=_first_env("SWIFT_CONNECT_TIMEOUT") or DEFAULT_CONNECT_TIMEOUT,
            timeout=_first_env("SWIFT_TIMEOUT") or DEFAULT_TIMEOUT,
        )


@lru_cache(maxsize=1)
def get_settings() -> SwiftSettings:
    return SwiftSettings.from_environment()
