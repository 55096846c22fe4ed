from __future__ import annotations

import pytest

from hedgeterminal.core.accounts.models import AccountConfig, AccountRef


def test_account_ref_maps_persistent_and_transport_ids() -> None:
    ref = AccountRef.from_payload(
        {"_id": "65f0", "accountId": "ACC-778899", "brokerName": "Acme", "maxPositionLimit": "4"}
    )

    assert ref == AccountRef(
        persistent_id="65f0",
        transport_id="ACC-778899",
        broker_name="Acme",
        max_position_limit=4,
    )
    assert ref.label == "Acme - 8899"


def test_account_ref_requires_both_ids() -> None:
    with pytest.raises(ValueError, match="missing identifiers"):
        AccountRef.from_payload({"_id": "65f0"})


def test_account_config_from_payload() -> None:
    config = AccountConfig.from_payload(
        {
            "autoLotSizeSet": True,
            "splittingTarget": 3,
            "riskPercentage": "1.5",
            "remainingDailyRisk": 120,
            "timezone": "Europe/London",
        }
    )

    assert config.auto_lot_size_set is True
    assert config.take_profit_slots == 3
    assert config.risk_percentage == 1.5
    assert config.remaining_daily_risk == 120.0
    assert config.timezone == "Europe/London"


def test_take_profit_slots_default_to_one() -> None:
    assert AccountConfig().take_profit_slots == 1
    assert AccountConfig(splitting_target=0).take_profit_slots == 1
