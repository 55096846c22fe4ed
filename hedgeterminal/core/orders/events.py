from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from hedgeterminal.core.orders.models import (
    OrderRequest,
    OrderResult,
    SubmissionState,
    VerifiedOrder,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SubmissionStateChanged:
    previous: SubmissionState
    current: SubmissionState
    timestamp: datetime

    @classmethod
    def now(cls, *, previous: SubmissionState, current: SubmissionState) -> "SubmissionStateChanged":
        return cls(previous=previous, current=current, timestamp=_now())


@dataclass(frozen=True)
class OrderValidationFailed:
    stage: str
    message: str
    timestamp: datetime

    @classmethod
    def now(cls, *, stage: str, message: str) -> "OrderValidationFailed":
        return cls(stage=stage, message=message, timestamp=_now())


@dataclass(frozen=True)
class OrderVerifyRequested:
    request: OrderRequest
    timestamp: datetime

    @classmethod
    def now(cls, request: OrderRequest) -> "OrderVerifyRequested":
        return cls(request=request, timestamp=_now())


@dataclass(frozen=True)
class OrderVerified:
    verified: VerifiedOrder
    timestamp: datetime

    @classmethod
    def now(cls, verified: VerifiedOrder) -> "OrderVerified":
        return cls(verified=verified, timestamp=_now())


@dataclass(frozen=True)
class OrderVerifyFailed:
    error: str
    timestamp: datetime

    @classmethod
    def now(cls, *, error: str) -> "OrderVerifyFailed":
        return cls(error=error, timestamp=_now())


@dataclass(frozen=True)
class OrderPlaceRequested:
    request: OrderRequest
    timestamp: datetime

    @classmethod
    def now(cls, request: OrderRequest) -> "OrderPlaceRequested":
        return cls(request=request, timestamp=_now())


@dataclass(frozen=True)
class OrderPlaced:
    result: OrderResult
    timestamp: datetime

    @classmethod
    def now(cls, result: OrderResult) -> "OrderPlaced":
        return cls(result=result, timestamp=_now())


@dataclass(frozen=True)
class OrderPlaceFailed:
    error: str
    timestamp: datetime

    @classmethod
    def now(cls, *, error: str) -> "OrderPlaceFailed":
        return cls(error=error, timestamp=_now())


@dataclass(frozen=True)
class SubmissionTransportFailed:
    stage: str
    error: str
    timestamp: datetime

    @classmethod
    def now(cls, *, stage: str, error: str) -> "SubmissionTransportFailed":
        return cls(stage=stage, error=error, timestamp=_now())


@dataclass(frozen=True)
class SubmissionTimedOut:
    stage: str
    timeout_secs: float
    timestamp: datetime

    @classmethod
    def now(cls, *, stage: str, timeout_secs: float) -> "SubmissionTimedOut":
        return cls(stage=stage, timeout_secs=timeout_secs, timestamp=_now())


@dataclass(frozen=True)
class StaleResponseDiscarded:
    response_type: str
    state: SubmissionState
    timestamp: datetime
    error: Optional[str] = None

    @classmethod
    def now(
        cls,
        *,
        response_type: str,
        state: SubmissionState,
        error: Optional[str] = None,
    ) -> "StaleResponseDiscarded":
        return cls(response_type=response_type, state=state, timestamp=_now(), error=error)
