from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from hedgeterminal.api.deps import get_session
from hedgeterminal.core.session.manager import SessionManager

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("")
def list_accounts(session: SessionManager = Depends(get_session)) -> list[dict]:
    """Accounts known to the session, with the active one flagged."""
    active = session.context.active
    return [
        {
            "persistent_id": account.persistent_id,
            "transport_id": account.transport_id,
            "broker_name": account.broker_name,
            "label": account.label,
            "max_position_limit": account.max_position_limit,
            "active": account == active,
        }
        for account in session.context.accounts
    ]


@router.get("/active/config")
def active_config(session: SessionManager = Depends(get_session)) -> dict:
    config = session.context.config
    if session.context.active is None:
        raise HTTPException(status_code=404, detail="no account selected")
    if config is None:
        raise HTTPException(status_code=404, detail="account configuration not loaded")
    payload = asdict(config)
    payload["take_profit_slots"] = config.take_profit_slots
    return payload
