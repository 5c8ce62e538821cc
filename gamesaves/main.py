"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gamesaves.api.api import api_router
from gamesaves.core.config import settings
from gamesaves.core.exceptions import AppException
from gamesaves.services.game_loader import GameLoader
from gamesaves.storage import create_backend
from gamesaves.storage.backend import SaveStoreBackend

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(backend: Optional[SaveStoreBackend] = None) -> FastAPI:
    """Build the application around an explicitly provided (or configured) backend."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ── Startup ──
        store = backend if backend is not None else create_backend(settings)
        app.state.backend = store
        app.state.game_loader = GameLoader(store)
        logger.info(f"Save store ready: {type(store).__name__}")
        yield
        # ── Shutdown ──
        await store.close()
        logger.info("Save store closed")

    application = FastAPI(
        title="Game Save Store API",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    application.include_router(api_router)

    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        """Convert AppException subclasses to structured JSON responses."""
        return JSONResponse(
            status_code=exc.http_status,
            content=exc.to_dict(),
        )

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Report unexpected failures as 500, with the error message in debug mode."""
        logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "INTERNAL_ERROR",
                "message": "An unexpected error occurred." if not settings.DEBUG else str(exc),
                "details": {},
            },
        )

    @application.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("gamesaves.main:app", host="0.0.0.0", port=8000)
