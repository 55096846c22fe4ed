from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CliErrorLogged:
    message: str
    error_type: str
    timestamp: datetime
    command: Optional[str] = None
    raw_input: Optional[str] = None

    @classmethod
    def now(
        cls,
        *,
        message: str,
        error_type: str,
        command: Optional[str] = None,
        raw_input: Optional[str] = None,
    ) -> "CliErrorLogged":
        return cls(
            message=message,
            error_type=error_type,
            timestamp=_now(),
            command=command,
            raw_input=raw_input,
        )


@dataclass(frozen=True)
class ChannelOpenAttempt:
    persistent_id: str
    transport_id: str
    timestamp: datetime

    @classmethod
    def now(cls, *, persistent_id: str, transport_id: str) -> "ChannelOpenAttempt":
        return cls(persistent_id=persistent_id, transport_id=transport_id, timestamp=_now())


@dataclass(frozen=True)
class ChannelOpenFailed:
    transport_id: str
    error_type: str
    message: str
    timestamp: datetime

    @classmethod
    def now(cls, *, transport_id: str, error_type: str, message: str) -> "ChannelOpenFailed":
        return cls(transport_id=transport_id, error_type=error_type, message=message, timestamp=_now())


@dataclass(frozen=True)
class ChannelClosed:
    transport_id: str
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, *, transport_id: str, reason: str) -> "ChannelClosed":
        return cls(transport_id=transport_id, reason=reason, timestamp=_now())


@dataclass(frozen=True)
class ChannelConnected:
    transport_id: str
    timestamp: datetime

    @classmethod
    def now(cls, *, transport_id: str) -> "ChannelConnected":
        return cls(transport_id=transport_id, timestamp=_now())


@dataclass(frozen=True)
class ChannelDisconnected:
    transport_id: str
    reason: Optional[str]
    timestamp: datetime

    @classmethod
    def now(cls, *, transport_id: str, reason: Optional[str] = None) -> "ChannelDisconnected":
        return cls(transport_id=transport_id, reason=reason, timestamp=_now())


@dataclass(frozen=True)
class StreamEventDiscarded:
    event_type: str
    event_transport_id: Optional[str]
    active_transport_id: Optional[str]
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        event_type: str,
        event_transport_id: Optional[str],
        active_transport_id: Optional[str],
    ) -> "StreamEventDiscarded":
        return cls(
            event_type=event_type,
            event_transport_id=event_transport_id,
            active_transport_id=active_transport_id,
            timestamp=_now(),
        )
