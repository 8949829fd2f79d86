from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.notes_backend.api.v1.routes_meetings import router as meetings_router_v1
from src.notes_backend.api.v1.routes_system import router as system_router_v1
from src.notes_backend.config import settings
from src.notes_backend.logging_setup import configure_logging
from src.notes_backend.services.transcription.service import MeetingTranscriptionService
from src.notes_backend.services.transcription.session_store import SessionStore


def create_app() -> FastAPI:
    """Build the API application together with its session store.

    Every app instance owns exactly one SessionStore, injected into the
    transcription service, so separate instances (e.g. per test) never share
    session state.
    """

    app = FastAPI(title="Workspace Notes Backend API")

    store = SessionStore()
    app.state.session_store = store
    app.state.transcription_service = MeetingTranscriptionService(store=store)

    @app.on_event("startup")
    async def on_startup() -> None:
        configure_logging()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        """Cancel pending session evictions; sessions die with the process anyway."""

        await store.close()

    # CORS configuration – permissive by default for development. Tighten via
    # CORS_ALLOW_ORIGINS in production deployments.
    allow_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["system"])
    async def health_check() -> dict:
        """Basic liveness probe for the API root."""
        return {"status": "ok"}

    # Versioned API routers
    app.include_router(system_router_v1, prefix="/api/v1")
    app.include_router(meetings_router_v1, prefix="/api/v1")

    return app


app = create_app()
