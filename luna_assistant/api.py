import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from luna_assistant.api_models import ErrorResponse
from luna_assistant.config import Settings, configure_logging, load_settings
from luna_assistant.core.llm import ModelGateway
from luna_assistant.dependencies import create_supabase_client
from luna_assistant.exceptions import AssistantError, ConfigurationError, UpstreamUnavailable
from luna_assistant.orchestrator import Orchestrator
from luna_assistant.routers import chat
from luna_assistant.tools import build_registry

logger = logging.getLogger("luna_assistant")


def create_app(
    settings: Settings | None = None,
    orchestrator: Orchestrator | None = None,
    http: httpx.AsyncClient | None = None,
    supabase=None,
) -> FastAPI:
    settings = settings or load_settings()

    app = FastAPI(
        title="Luna Assistant API",
        description="Conversational tool orchestration for the Luna classroom assistant.",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator
    app.state.http = http
    app.state.supabase = supabase
    app.state.startup_error = None

    # --- CORS Configuration ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Mount Routers ---
    app.include_router(chat.router, prefix="/api")

    @app.get("/healthz", tags=["Root"])
    async def healthz():
        return {"status": "ok", "modelConfigured": app.state.orchestrator is not None}

    # Global exception handlers to return JSON ErrorResponse
    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError):
        if isinstance(exc, UpstreamUnavailable):
            logger.error("Upstream model failure: %s", exc.message)
            err = ErrorResponse(message=exc.user_message, error_code=exc.error_code)
        else:
            if exc.status_code >= 500:
                logger.error("%s: %s", type(exc).__name__, exc.message)
            err = ErrorResponse(message=exc.message, error_code=exc.error_code, details=exc.details)
        return JSONResponse(status_code=exc.status_code, content=err.model_dump(exclude_none=True))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception: %s", exc)
        err = ErrorResponse(message="Internal server error", error_code="internal_error")
        return JSONResponse(status_code=500, content=err.model_dump(exclude_none=True))

    @app.on_event("startup")
    async def _startup():
        configure_logging(settings)
        if app.state.http is None:
            app.state.http = httpx.AsyncClient(timeout=settings.backend_timeout)
        if app.state.supabase is None:
            app.state.supabase = create_supabase_client(settings)
        if app.state.orchestrator is not None:
            return
        try:
            app.state.orchestrator = Orchestrator(ModelGateway.from_settings(settings), build_registry())
        except ConfigurationError as exc:
            # Every chat request is refused with this reason until fixed.
            logger.error("Assistant disabled: %s", exc.message)
            app.state.startup_error = exc.message

    @app.on_event("shutdown")
    async def _shutdown_async_clients():
        """Close the shared async clients so their finalizers don't run at interpreter exit."""
        try:
            if app.state.http is not None:
                await app.state.http.aclose()
            if app.state.orchestrator is not None:
                await app.state.orchestrator.gateway.close()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to close async clients on shutdown: %s", exc)

    return app


app = create_app()

# To run the API: uvicorn luna_assistant.api:app --reload
