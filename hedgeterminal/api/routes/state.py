from dataclasses import asdict
from typing import Any, Optional

from fastapi import APIRouter, Depends

from hedgeterminal.api.deps import get_session
from hedgeterminal.core.orders.draft import draft_errors
from hedgeterminal.core.session.manager import SessionManager

router = APIRouter(prefix="/state", tags=["state"])


@router.get("")
def get_state(session: SessionManager = Depends(get_session)) -> dict:
    return {
        "session": session.status(),
        "live": _live(session),
        "draft": _draft(session),
        "submission": _submission(session),
    }


@router.get("/live")
def get_live(session: SessionManager = Depends(get_session)) -> dict:
    return _live(session)


@router.get("/draft")
def get_draft(session: SessionManager = Depends(get_session)) -> dict:
    return _draft(session)


@router.get("/submission")
def get_submission(session: SessionManager = Depends(get_session)) -> dict:
    return _submission(session)


def _live(session: SessionManager) -> dict[str, Any]:
    live = session.context.live
    return {
        "account_info": asdict(live.account_info) if live.account_info else None,
        "positions": [asdict(pos) for pos in live.positions],
        "pending_orders": [asdict(order) for order in live.pending_orders],
    }


def _draft(session: SessionManager) -> dict[str, Any]:
    context = session.context
    payload = asdict(context.draft)
    payload["errors"] = draft_errors(context.draft, account=context.active, config=context.config)
    return payload


def _submission(session: SessionManager) -> dict[str, Any]:
    context = session.context
    verified = context.verified_order
    return {
        "state": context.submission_state.value,
        "verified_order": asdict(verified) if verified else None,
        "last_error": _error(context.last_error),
    }


def _error(error: Optional[Exception]) -> Optional[dict[str, str]]:
    if error is None:
        return None
    return {"type": type(error).__name__, "message": str(error)}
