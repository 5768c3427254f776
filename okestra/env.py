"""Settings read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from typing import Any, Mapping, Optional, TypeVar

_TRUE = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_T = TypeVar("_T")


def _var(name: str) -> dict[str, str]:
    return {"env": name}


def _parse_bool(name: str, raw: str) -> bool:
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ValueError(f"{name}: invalid boolean value {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    text = raw.strip()
    for base in (0, 10):
        try:
            return int(text, base)
        except ValueError:
            continue
    raise ValueError(f"{name}: invalid integer value {raw!r}")


def _parse(name: str, raw: str, kind: type) -> Any:
    if kind is bool:
        return _parse_bool(name, raw)
    if kind is int:
        return _parse_int(name, raw)
    return raw


def _load(cls: type[_T], environ: Optional[Mapping[str, str]]) -> _T:
    source = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for spec in fields(cls):
        name = spec.metadata["env"]
        raw = source.get(name)
        if raw is None or raw == "":
            continue
        values[spec.name] = _parse(name, raw, type(spec.default))
    return cls(**values)


@dataclass
class EventStoreEnv:
    """Event store settings; times are in seconds."""

    out_of_order_time: int = field(
        default=10, metadata=_var("EVENTSTORE_OUT_OF_ORDER_TIME")
    )
    delete_streams_interval: int = field(
        default=1, metadata=_var("EVENTSTORE_DELETE_STREAMS_INTERVAL")
    )
    delete_streams_ttl: int = field(
        default=10, metadata=_var("EVENTSTORE_DELETE_STREAMS_TTL")
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EventStoreEnv":
        """Build from ``environ`` (the process environment by default)."""
        return _load(cls, environ)


@dataclass
class SupervisorEnv:
    """Supervisor settings; the retry period is in milliseconds."""

    max_retries: int = field(default=3, metadata=_var("SUPERVISOR_MAX_RETRIES"))
    retry_period: int = field(default=1000, metadata=_var("SUPERVISOR_RETRY_PERIOD"))
    global_lock: bool = field(default=False, metadata=_var("SUPERVISOR_GLOBAL_LOCK"))
    max_children: int = field(default=-1, metadata=_var("SUPERVISOR_MAX_CHILDREN"))
    is_local: bool = field(default=True, metadata=_var("SUPERVISOR_IS_LOCAL"))
    node_name: str = field(default="localhost", metadata=_var("SUPERVISOR_NODE_NAME"))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "SupervisorEnv":
        """Build from ``environ`` (the process environment by default)."""
        return _load(cls, environ)


@dataclass
class TelemetryEnv:
    """Telemetry settings."""

    use_workers: bool = field(default=False, metadata=_var("TELEMETRY_USE_GOROUTINES"))
    pool_size: int = field(default=10, metadata=_var("TELEMETRY_GOROUTINE_POOL_SIZE"))
    buffer_size: int = field(default=10, metadata=_var("TELEMETRY_BUFFER_SIZE"))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TelemetryEnv":
        """Build from ``environ`` (the process environment by default)."""
        return _load(cls, environ)