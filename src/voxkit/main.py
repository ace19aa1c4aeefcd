"""
FastAPI application entry point.

Usage:
    uvicorn voxkit.main:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

from fastapi import FastAPI

from voxkit import __version__
from voxkit.api.routes import router
from voxkit.core.logging import configure_logging


def create_app() -> FastAPI:
    """Configure logging and build the application with the voxkit routes."""
    configure_logging()
    app = FastAPI(title="voxkit", version=__version__)
    app.include_router(router)
    return app


app = create_app()
