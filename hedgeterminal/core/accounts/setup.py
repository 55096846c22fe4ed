from __future__ import annotations

from typing import Any, Optional

from hedgeterminal.core.accounts.events import (
    AccountSetupConfirmed,
    AccountSetupFailed,
    AccountSetupVerified,
)
from hedgeterminal.core.accounts.models import AccountSetup
from hedgeterminal.core.accounts.ports import AccountDirectoryPort
from hedgeterminal.core.errors import AccountSetupError, DomainError
from hedgeterminal.core.orders.ports import EventBus

_INVALID_CREDENTIALS = "Invalid API key or account ID"
_INVALID_CREDENTIALS_HINT = "Invalid API key, account ID, or wrong region selected."


def validate_account_setup(setup: AccountSetup) -> None:
    if not setup.broker_name.strip():
        raise AccountSetupError("Broker Name is required.")
    if not setup.account_id.strip():
        raise AccountSetupError("Account ID is required.")
    if not setup.api_key.strip():
        raise AccountSetupError("API Key is required.")
    if not setup.location.strip():
        raise AccountSetupError("Location is required.")
    if not _positive(setup.max_position_limit):
        raise AccountSetupError("Max Position Limit must be a positive number.")
    if not _positive(setup.splitting_target):
        raise AccountSetupError("Splitting Target must be a positive number.")
    if setup.auto_lot_size_set and not _positive(setup.risk_percentage):
        raise AccountSetupError(
            "Risk Percentage must be a positive number when using automatic lot size calculation."
        )
    daily = setup.daily_risk_percentage
    if daily is not None and daily != 0:
        if daily < 0:
            raise AccountSetupError("Daily Risk Percentage must be a positive number if provided.")
        if daily > 100:
            raise AccountSetupError("Daily Risk Percentage cannot exceed 100%.")
        if not setup.timezone.strip():
            raise AccountSetupError("Timezone is required when Daily Risk Percentage is set.")


class AccountSetupService:
    """Registers a brokerage account: broker-side verification, then confirmation."""

    def __init__(self, directory: AccountDirectoryPort, event_bus: Optional[EventBus] = None) -> None:
        self._directory = directory
        self._event_bus = event_bus

    async def verify(self, setup: AccountSetup) -> Optional[dict[str, Any]]:
        """Validate locally and ask the server to check the broker credentials.

        Returns the broker's account information for review before confirming.
        """
        validate_account_setup(setup)
        response = await self._directory.add_account(setup.to_payload())
        self._raise_for_error(setup, "verify", response)
        info = response.get("accountInfo")
        self._publish(AccountSetupVerified.now(account_id=setup.account_id, account_info=info))
        return info

    async def confirm(self, setup: AccountSetup) -> dict[str, Any]:
        validate_account_setup(setup)
        response = await self._directory.confirm_account(setup.to_payload())
        self._raise_for_error(setup, "confirm", response)
        self._publish(AccountSetupConfirmed.now(account_id=setup.account_id))
        return response

    def _raise_for_error(self, setup: AccountSetup, stage: str, response: dict[str, Any]) -> None:
        error = response.get("error")
        if not error:
            return
        message = _INVALID_CREDENTIALS_HINT if error == _INVALID_CREDENTIALS else str(error)
        self._publish(AccountSetupFailed.now(account_id=setup.account_id, stage=stage, error=message))
        raise DomainError(message)

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)


def _positive(value: Optional[float]) -> bool:
    return value is not None and value > 0
