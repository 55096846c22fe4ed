from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LiveStateUpdated:
    kind: str
    transport_id: Optional[str]
    positions: int
    pending_orders: int
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        kind: str,
        transport_id: Optional[str],
        positions: int,
        pending_orders: int,
    ) -> "LiveStateUpdated":
        return cls(
            kind=kind,
            transport_id=transport_id,
            positions=positions,
            pending_orders=pending_orders,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class LiveStateCleared:
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, *, reason: str) -> "LiveStateCleared":
        return cls(reason=reason, timestamp=_now())
