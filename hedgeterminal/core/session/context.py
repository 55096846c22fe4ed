from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from hedgeterminal.core.accounts.models import AccountConfig, AccountRef
from hedgeterminal.core.errors import DashboardError
from hedgeterminal.core.live_state.models import LiveState
from hedgeterminal.core.orders.models import OrderDraft, SubmissionState, VerifiedOrder


@dataclass
class DashboardContext:
    """Shared view state, owned by the session and passed to its collaborators.

    ``generation`` increments on every account selection so that work started
    for an earlier selection can recognise itself as superseded.
    """

    accounts: list[AccountRef] = field(default_factory=list)
    active: Optional[AccountRef] = None
    config: Optional[AccountConfig] = None
    live: LiveState = field(default_factory=LiveState)
    draft: OrderDraft = field(default_factory=OrderDraft.empty)
    submission_state: SubmissionState = SubmissionState.IDLE
    verified_order: Optional[VerifiedOrder] = None
    last_error: Optional[DashboardError] = None
    generation: int = 0

    @property
    def take_profit_slots(self) -> int:
        if self.config is None:
            return 1
        return self.config.take_profit_slots

    def find_account(self, key: str) -> Optional[AccountRef]:
        for account in self.accounts:
            if key in (account.persistent_id, account.transport_id):
                return account
        return None
