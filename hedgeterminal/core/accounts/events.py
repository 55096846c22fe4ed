from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from hedgeterminal.core.accounts.models import AccountConfig


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class AccountsLoaded:
    count: int
    timestamp: datetime

    @classmethod
    def now(cls, *, count: int) -> "AccountsLoaded":
        return cls(count=count, timestamp=_now())


@dataclass(frozen=True)
class AccountsLoadFailed:
    error: str
    timestamp: datetime

    @classmethod
    def now(cls, *, error: str) -> "AccountsLoadFailed":
        return cls(error=error, timestamp=_now())


@dataclass(frozen=True)
class AccountSelected:
    persistent_id: str
    transport_id: str
    previous_persistent_id: Optional[str]
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        persistent_id: str,
        transport_id: str,
        previous_persistent_id: Optional[str],
    ) -> "AccountSelected":
        return cls(
            persistent_id=persistent_id,
            transport_id=transport_id,
            previous_persistent_id=previous_persistent_id,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class AccountConfigLoaded:
    persistent_id: str
    config: AccountConfig
    timestamp: datetime

    @classmethod
    def now(cls, *, persistent_id: str, config: AccountConfig) -> "AccountConfigLoaded":
        return cls(persistent_id=persistent_id, config=config, timestamp=_now())


@dataclass(frozen=True)
class AccountConfigFailed:
    persistent_id: str
    error: str
    timestamp: datetime

    @classmethod
    def now(cls, *, persistent_id: str, error: str) -> "AccountConfigFailed":
        return cls(persistent_id=persistent_id, error=error, timestamp=_now())


@dataclass(frozen=True)
class AccountSetupVerified:
    account_id: str
    account_info: Optional[dict]
    timestamp: datetime

    @classmethod
    def now(cls, *, account_id: str, account_info: Optional[dict]) -> "AccountSetupVerified":
        return cls(account_id=account_id, account_info=account_info, timestamp=_now())


@dataclass(frozen=True)
class AccountSetupConfirmed:
    account_id: str
    timestamp: datetime

    @classmethod
    def now(cls, *, account_id: str) -> "AccountSetupConfirmed":
        return cls(account_id=account_id, timestamp=_now())


@dataclass(frozen=True)
class AccountSetupFailed:
    account_id: str
    stage: str
    error: str
    timestamp: datetime

    @classmethod
    def now(cls, *, account_id: str, stage: str, error: str) -> "AccountSetupFailed":
        return cls(account_id=account_id, stage=stage, error=error, timestamp=_now())
