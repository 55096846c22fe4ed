from __future__ import annotations

from typing import Any, Protocol

from hedgeterminal.core.accounts.models import AccountConfig, AccountRef


class AccountDirectoryPort(Protocol):
    async def list_accounts(self) -> list[AccountRef]:
        """Return the accounts the user may select."""
        raise NotImplementedError

    async def get_account_config(self, persistent_id: str) -> AccountConfig:
        """Return risk parameters for one account, addressed by its persistent id."""
        raise NotImplementedError

    async def add_account(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Submit a new account registration for broker-side verification."""
        raise NotImplementedError

    async def confirm_account(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Persist a previously verified account registration."""
        raise NotImplementedError
