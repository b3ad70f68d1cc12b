"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from promptcut.api.routes import router
from promptcut.config import settings
from promptcut.logging_config import configure_logging
from promptcut.parser import PromptParser, build_chat_model

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# CORS configuration
# ---------------------------------------------------------------------------

_DEFAULT_ORIGINS = {
    "http://localhost:3000",
    "http://127.0.0.1:3000",
}


def _get_allowed_origins() -> set[str]:
    origins = set(_DEFAULT_ORIGINS)
    if settings.allowed_origins:
        origins.update(o.strip() for o in settings.allowed_origins.split(",") if o.strip())
    return origins


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(prompt_parser: PromptParser | None = None) -> FastAPI:
    """Build the application.

    *prompt_parser* replaces the Claude-backed parser (tests pass a fake).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.prompt_parser = prompt_parser or PromptParser(build_chat_model(settings))
        logger.info("app.startup", parser_model=settings.parser_model)
        yield
        logger.info("app.shutdown")

    app = FastAPI(
        title="promptcut",
        description="Natural-language video editing: prompt to ffmpeg pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(_get_allowed_origins()),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    return app


configure_logging()
app = create_app()
