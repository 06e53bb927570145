"""Middleware registration."""

from fastapi import FastAPI

from fairytale.config import Settings
from fairytale.middleware.error_handler import setup_error_handlers
from fairytale.middleware.logging import setup_logging
from fairytale.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
