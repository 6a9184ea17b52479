"""
Server configuration.

Values come from defaults, then SQLITE_FLIGHTSQL_* environment variables,
then command line flags (see server.main()).
"""

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

ENV_PREFIX = "SQLITE_FLIGHTSQL_"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class ServerConfig:
    """Flight SQL server settings."""

    host: str = "localhost"
    port: int = 31337
    database: str = ":memory:"
    batch_size: int = 1024
    seed_example_data: bool = True
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self):
        if not (0 <= self.port <= 65535):
            raise ValueError(f"port must be 0-65535, got {self.port}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {self.batch_size}")

    @property
    def location(self) -> str:
        return f"grpc://{self.host}:{self.port}"

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ServerConfig":
        defaults = cls()
        return cls(
            host=str(d.get("host", defaults.host)),
            port=_parse_int("port", d.get("port", defaults.port)),
            database=str(d.get("database", defaults.database)),
            batch_size=_parse_int("batch_size", d.get("batch_size", defaults.batch_size)),
            seed_example_data=_parse_bool(
                "seed_example_data", d.get("seed_example_data", defaults.seed_example_data)),
            log_level=str(d.get("log_level", defaults.log_level)).upper(),
            json_logs=_parse_bool("json_logs", d.get("json_logs", defaults.json_logs)),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """
        Load settings from SQLITE_FLIGHTSQL_* variables.

        Unset variables keep their defaults; malformed values raise ValueError.
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in ("host", "port", "database", "batch_size",
                     "seed_example_data", "log_level", "json_logs"):
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        return cls.from_dict(values)

    def with_overrides(self, **overrides: Any) -> "ServerConfig":
        """Copy with every non-None override applied"""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
