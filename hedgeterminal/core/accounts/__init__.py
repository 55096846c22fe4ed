from hedgeterminal.core.accounts.models import AccountConfig, AccountRef, AccountSetup

__all__ = [
    "AccountConfig",
    "AccountRef",
    "AccountSetup",
]
