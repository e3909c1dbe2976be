"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from livecode.api.api import api_router
from livecode.core.config import Settings, settings as default_settings
from livecode.core.exceptions import AppException
from livecode.services.document_store import DocumentStore
from livecode.services.sync_server import SyncServer
from livecode.storage import GamePersistence, create_persistence

# Configure logging
logging.basicConfig(
    level=getattr(logging, default_settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _check_config(config: Settings) -> None:
    """Log configuration warnings and fail fast on security errors."""
    config_warnings, config_errors = config.validate_security()

    for warning in config_warnings:
        logger.warning(f"Config Warning: {warning}")

    for error in config_errors:
        logger.error(f"Config Error: {error}")

    if config_errors:
        logger.error("In development, set DEBUG=true to bypass strict validation.")
        raise RuntimeError(
            f"Critical security configuration errors ({len(config_errors)} issues). "
            "Check logs for details."
        )


def create_app(config: Optional[Settings] = None, persistence: Optional[GamePersistence] = None) -> FastAPI:
    """Build the application.

    The persistence collaborator defaults to the one selected by
    PERSISTENCE_BACKEND; the store and sync server are constructed in the
    lifespan and kept on app.state.
    """
    config = config or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: startup and shutdown logic."""
        # ── Startup ──
        logger.info("Livecode sync API starting up...")
        _check_config(config)

        backend = persistence or create_persistence(config)
        store = DocumentStore(
            backend,
            guid_length=config.GUID_LENGTH,
            guid_max_attempts=config.guid_max_attempts,
        )
        games = await store.init()
        logger.info(f"Document store ready with {len(games)} game(s)")

        server = SyncServer(
            store,
            heartbeat_interval=config.HEARTBEAT_INTERVAL_SECONDS,
            max_connections=config.MAX_TOTAL_CONNECTIONS,
            max_message_bytes=config.MAX_MESSAGE_BYTES,
        )
        await server.start()

        app.state.settings = config
        app.state.persistence = backend
        app.state.store = store
        app.state.sync_server = server
        yield
        # ── Shutdown ──
        logger.info("Livecode sync API shutting down...")
        await server.stop()
        await store.shutdown()
        try:
            await backend.close()
        except Exception as e:
            logger.warning(f"Error closing persistence: {e}")
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Livecode Sync API",
        description="Realtime collaborative stream editing",
        version=VERSION,
        debug=config.DEBUG,
        lifespan=lifespan,
    )

    # Browsers reject credentialed requests to a wildcard origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials="*" not in config.CORS_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    )

    app.include_router(api_router)

    # ── Global Exception Handlers ──

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Convert AppException subclasses to structured JSON responses."""
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all handler to prevent stack trace leaking in production."""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred." if not config.DEBUG else str(exc),
                "details": {},
            },
        )

    @app.get("/")
    def root(request: Request):
        """Root endpoint - health check."""
        return {
            "status": "ok",
            "message": "Livecode sync API is running",
            "version": VERSION,
            "games": request.app.state.store.game_count,
            "connections": request.app.state.sync_server.connection_count,
        }

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("livecode.main:app", host="0.0.0.0", port=8000, reload=True)
