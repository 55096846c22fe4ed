from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hedgeterminal.api import settings
from hedgeterminal.api.routes import accounts, state
from hedgeterminal.core.session.manager import SessionManager


def create_app(session: SessionManager) -> FastAPI:
    app = FastAPI(title="hedgeterminal API")
    app.state.session = session

    # Allow calls from the frontend dev server (and any configured origins).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(accounts.router)
    app.include_router(state.router)
    return app
