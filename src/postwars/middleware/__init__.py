"""Middleware registration."""

from fastapi import FastAPI

from postwars.config import Settings
from postwars.middleware.cors import setup_cors
from postwars.middleware.error_handler import setup_error_handlers
from postwars.middleware.logging import setup_logging
from postwars.middleware.rate_limit import RateLimitMiddleware
from postwars.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register all middleware in the correct order.

    Starlette runs middleware in reverse-add order (last added = outermost).
    CORS is added last so it also wraps 429 responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        submissions_per_window=settings.rate_limit_submissions,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
