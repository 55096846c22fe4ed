from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from hedgeterminal.core.payload import first_of, opt_float, opt_int, opt_str


@dataclass(frozen=True)
class AccountRef:
    """Directory entry for an account the user may select.

    ``persistent_id`` addresses the account over REST; ``transport_id`` is the
    broker-side id that tags every push event on the streaming channel.
    """

    persistent_id: str
    transport_id: str
    broker_name: str = ""
    max_position_limit: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AccountRef":
        persistent_id = opt_str(first_of(payload, "_id", "id"))
        transport_id = opt_str(payload.get("accountId"))
        if not persistent_id or not transport_id:
            raise ValueError(f"account entry is missing identifiers: {dict(payload)!r}")
        return cls(
            persistent_id=persistent_id,
            transport_id=transport_id,
            broker_name=str(payload.get("brokerName") or ""),
            max_position_limit=opt_int(payload.get("maxPositionLimit")),
        )

    @property
    def label(self) -> str:
        suffix = self.transport_id[-4:]
        if self.broker_name:
            return f"{self.broker_name} - {suffix}"
        return suffix


@dataclass(frozen=True)
class AccountConfig:
    auto_lot_size_set: bool = False
    splitting_target: Optional[int] = None
    risk_percentage: Optional[float] = None
    daily_risk_percentage: Optional[float] = None
    remaining_daily_risk: Optional[float] = None
    max_position_limit: Optional[int] = None
    timezone: Optional[str] = None
    broker_name: Optional[str] = None
    account_id: Optional[str] = None
    location: Optional[str] = None

    @property
    def take_profit_slots(self) -> int:
        if self.splitting_target is None or self.splitting_target < 1:
            return 1
        return self.splitting_target

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AccountConfig":
        return cls(
            auto_lot_size_set=bool(payload.get("autoLotSizeSet", False)),
            splitting_target=opt_int(payload.get("splittingTarget")),
            risk_percentage=opt_float(payload.get("riskPercentage")),
            daily_risk_percentage=opt_float(payload.get("dailyRiskPercentage")),
            remaining_daily_risk=opt_float(payload.get("remainingDailyRisk")),
            max_position_limit=opt_int(payload.get("maxPositionLimit")),
            timezone=opt_str(payload.get("timezone")),
            broker_name=opt_str(payload.get("brokerName")),
            account_id=opt_str(payload.get("accountId")),
            location=opt_str(payload.get("location")),
        )


@dataclass(frozen=True)
class AccountSetup:
    broker_name: str
    account_id: str
    api_key: str
    location: str
    max_position_limit: Optional[float] = None
    splitting_target: Optional[float] = None
    risk_percentage: Optional[float] = None
    auto_lot_size_set: bool = False
    daily_risk_percentage: Optional[float] = None
    timezone: str = ""

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "brokerName": self.broker_name.strip(),
            "accountId": self.account_id.strip(),
            "apiKey": self.api_key.strip(),
            "location": self.location.strip(),
            "maxPositionLimit": _whole(self.max_position_limit),
            "splittingTarget": _whole(self.splitting_target),
            "riskPercentage": self.risk_percentage if self.auto_lot_size_set else 0,
            "autoLotSizeSet": self.auto_lot_size_set,
        }
        if self.daily_risk_percentage:
            payload["dailyRiskPercentage"] = self.daily_risk_percentage
            payload["timezone"] = self.timezone.strip()
        return payload


def _whole(value: Optional[float]) -> Optional[float]:
    if value is not None and float(value).is_integer():
        return int(value)
    return value
