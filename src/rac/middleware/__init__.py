"""Middleware registration."""

from fastapi import FastAPI

from rac.config import Settings
from rac.middleware.error_handler import setup_error_handlers
from rac.middleware.logging import setup_logging


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging and register the exception handlers."""
    setup_logging(settings)
    setup_error_handlers(app)
