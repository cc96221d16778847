"""
PanelSync - Hot Folder Service

Local status and admin API around the hot-folder pipeline:
- Watches the jobs and geometry-import folders
- Reports watcher health, in-flight files and outcome counters
- Triggers the ad-hoc OBJ export of the active document
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from app.api import admin, health
from app.utils.config import Settings, get_settings
from app.utils.log import configure_console
from domains.hot_folder.gateway import CadHostGateway
from domains.hot_folder.service import HotFolderService


def create_app(settings: Optional[Settings] = None, gateway: Optional[CadHostGateway] = None) -> FastAPI:
    """Build the API; the hot-folder service lives for the app's lifespan."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.api_title} v{settings.api_version}")

        service = HotFolderService(settings, gateway)
        try:
            service.activate()
        except Exception as e:
            logger.error(f"Failed to activate hot-folder service: {e}")
            raise
        app.state.hot_folder = service

        yield

        # Cleanup
        logger.info("Shutting down application...")
        service.deactivate()
        logger.success("Application shut down complete")

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="Hot-folder geometry exchange between two desktop CAD applications",
        lifespan=lifespan
    )
    app.state.settings = settings

    # Exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler."""
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.log_level == "DEBUG" else "An error occurred"
            }
        )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(admin.router, prefix="/admin", tags=["Admin"])

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": settings.api_title,
            "version": settings.api_version,
            "hot_root": str(settings.hot_root),
            "docs": "/docs",
            "health": "/health"
        }

    return app


configure_console(get_settings().log_level)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host="127.0.0.1",
        port=settings.api_port,
        log_level=settings.log_level.lower()
    )
