"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ..app import Application
from ..config import BLOB_BASE_URL
from .routes import (
    control,
    create_control_router,
    create_lists_router,
    create_messaging_router,
    create_observability_router,
    create_sessions_router,
)


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(fastapi_app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        sim_instance = control.get_sim_instance()
        if sim_instance and hasattr(sim_instance, "set_tracker"):
            sim_instance.set_tracker(application.tracker)
        yield
        if sim_instance:
            await sim_instance.stop()
        await application.stop()

    fastapi_app = FastAPI(
        title="Duet API",
        description="Two-party messages, drawings and shared lists",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:5174"],  # Vite default
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    fastapi_app.include_router(create_sessions_router(application))
    fastapi_app.include_router(create_messaging_router(application))
    fastapi_app.include_router(create_lists_router(application))
    fastapi_app.include_router(create_observability_router(application))
    fastapi_app.include_router(create_control_router(application))

    # Drawings and avatars written by LocalObjectStorage
    if BLOB_BASE_URL.startswith("/"):
        fastapi_app.mount(
            BLOB_BASE_URL,
            StaticFiles(directory=str(application.blob_dir), check_dir=False),
            name="blobs",
        )

    return fastapi_app
