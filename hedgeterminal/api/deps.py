from fastapi import HTTPException, Request

from hedgeterminal.core.session.manager import SessionManager


def get_session(request: Request) -> SessionManager:
    """
    Return the SessionManager the app was created with.

    Usage in routes:
        def handler(session: SessionManager = Depends(get_session)):
            ...
    """
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="session not available")
    return session
