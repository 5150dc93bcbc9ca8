"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the questionnaires and creates the token
    store and message renderer once
  - CORS middleware
  - Global exception handlers (SDK errors → 400/500, KeyError → 404)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``intake-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from intake_forms.errors import IntakeError
from intake_forms.message import MessageRenderer
from intake_forms.questionnaire import QuestionnaireStore
from intake_forms.tokens import InMemoryTokenStore

from intake_server.config import ServerSettings, load_settings
from intake_server.errors import (
    generic_error_handler,
    intake_error_handler,
    key_error_handler,
    request_validation_error_handler,
    value_error_handler,
)
from intake_server.routes import register_routes

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup.

    Startup:
      1. Load YAML questionnaires into a ``QuestionnaireStore``
      2. Create the in-memory ``InMemoryTokenStore``
      3. Create the ``MessageRenderer``
      4. Stash them on ``app.state`` for dependency injection

    Tokens live only in process memory; a restart invalidates every
    pending login.
    """
    settings: ServerSettings = app.state.settings

    # --- Load questionnaires ---
    store = QuestionnaireStore(questionnaire_dir=settings.questionnaire_dir)
    store.load()
    logger.info("QuestionnaireStore loaded successfully")

    app.state.store = store
    app.state.tokens = InMemoryTokenStore(
        session_ttl=settings.session_ttl,
        user_token_ttl=settings.user_token_ttl,
    )
    app.state.renderer = MessageRenderer()

    if not settings.bot_token or not settings.chat_id:
        logger.warning("Telegram bot token or chat id not set; /submit will return 500")

    yield

    logger.info("Shutting down; %d pending token(s) discarded", app.state.tokens.stats()["user_tokens"])


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    # --- Configure logging ---
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Intake API Server",
        description="REST API for Telegram-authenticated medical intake questionnaires",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings so the lifespan handler can read them
    app.state.settings = settings

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Exception handlers ---
    app.add_exception_handler(IntakeError, intake_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health(request: Request) -> dict:
        """Readiness probe — questionnaires loaded, token store counts."""
        store: QuestionnaireStore = request.app.state.store
        tokens: InMemoryTokenStore = request.app.state.tokens
        return {
            "status": "ok",
            "questionnaires": store.categories(),
            **tokens.stats(),
        }

    # --- Mount all API routes ---
    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn intake_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``intake-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "intake_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
