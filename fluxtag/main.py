"""
Purpose:
- FastAPI application factory and router mounts.
- Adds CORS for the browser front end.
- One CaptionSession per process, kept on app.state.
- Uvicorn will serve this on 0.0.0.0:8000 by default.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.errors import AppError
from .core.logging_config import setup_logging
from .core.settings import settings
from .services.session import CaptionSession
from .api.deps import app_error_handler
from .api.health import router as health_router
from .api.settings import router as settings_router
from .api.images import router as images_router
from .api.jobs import router as jobs_router
from .api.export import router as export_router

def create_app(session: Optional[CaptionSession] = None) -> FastAPI:
    setup_logging(settings.log_level, settings.log_file)
    app = FastAPI(title="FluxTag API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.session = session or CaptionSession()
    app.add_exception_handler(AppError, app_error_handler)

    app.include_router(health_router)
    app.include_router(settings_router)
    app.include_router(images_router)
    app.include_router(jobs_router)
    app.include_router(export_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn on settings.host:settings.port."""
    import uvicorn
    uvicorn.run("fluxtag.main:app", host=settings.host, port=settings.port)
