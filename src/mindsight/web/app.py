from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from ..clients import (
    CoachChatClient,
    CoachingClient,
    HistoryStore,
    HttpCoachChatClient,
    HttpCoachingClient,
    HttpScoringClient,
    HttpTargetDescriber,
    InMemoryHistoryStore,
    PicsumTargetClient,
    ScoringClient,
    TargetAcquisitionClient,
)
from ..core.concurrency import shutdown_blocking_pool
from ..core.identity import AuthState
from ..core.settings import Settings
from ..features.session import SessionController, create_session_router

__all__ = ["create_app", "main"]

logger = logging.getLogger(__name__)


def _default_acquisition(http: httpx.AsyncClient, settings: Settings) -> PicsumTargetClient:
    describer = HttpTargetDescriber(http, settings.describe_url) if settings.describe_url else None
    return PicsumTargetClient(http, url_template=settings.target_url, describer=describer)


def create_app(
    settings: Settings | None = None,
    *,
    acquisition: TargetAcquisitionClient | None = None,
    scoring: ScoringClient | None = None,
    coaching: CoachingClient | None = None,
    chat: CoachChatClient | None = None,
    store: HistoryStore | None = None,
    auth: AuthState | None = None,
) -> FastAPI:
    """Assemble the app: one identity state and one controller per process.

    Collaborators not passed in are built from *settings*; the history store
    defaults to the in-memory implementation.
    """

    settings = settings or Settings.from_env()
    http = httpx.AsyncClient(timeout=settings.http_timeout)
    auth = auth or AuthState()
    controller = SessionController(
        acquisition=acquisition or _default_acquisition(http, settings),
        scoring=scoring or HttpScoringClient(http, settings.scoring_url),
        coaching=coaching or HttpCoachingClient(http, settings.coaching_url),
        chat=chat or HttpCoachChatClient(http, settings.chat_url),
        store=store or InMemoryHistoryStore(),
        settings=settings,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        unsubscribe = controller.bind_identity(auth)
        logger.info("session controller bound to identity state")
        try:
            yield
        finally:
            unsubscribe()
            await controller.aclose()
            await http.aclose()
            shutdown_blocking_pool()
            logger.info("session controller shut down")

    app = FastAPI(title="MindSight", lifespan=lifespan)
    app.state.controller = controller
    app.state.auth = auth
    app.state.settings = settings
    app.include_router(create_session_router(controller, auth))

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main() -> None:  # pragma: no cover - runner
    import uvicorn

    host = os.environ.get("BIND", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()
