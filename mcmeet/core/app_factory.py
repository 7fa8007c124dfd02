"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
per-policy rate limiters) so tests can build isolated instances.
"""

from __future__ import annotations

from typing import Callable

from fastapi import FastAPI

from mcmeet.api.routes import chat_router, health_router
from mcmeet.core.config import Settings, settings as default_settings
from mcmeet.core.exception_handlers import setup_exception_handlers
from mcmeet.core.logging import configure_logging
from mcmeet.core.middleware import request_id_middleware
from mcmeet.core.rate_limit import build_rate_limiters


def create_app(
    app_settings: Settings | None = None,
    *,
    clock: Callable[[], int] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        app_settings: Settings to build from; defaults to the global settings.
        clock: Optional millisecond clock for the rate limiters.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and limiters.
    """
    cfg = app_settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log)

    app = FastAPI(
        title="MCMeet API",
        description=(
            "Faculty meeting scheduling backend. Chat, booking and auth endpoints "
            "are protected by per-policy fixed-window rate limits and report their "
            "quota through X-RateLimit-* headers."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
    )

    # Request-time lookups (principal header, proxy trust, limit toggles) read these
    app.state.settings = cfg

    # One independently owned limiter per policy, alive for the app's lifetime
    app.state.rate_limiters = build_rate_limiters(cfg.rate_limit, clock=clock)

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(chat_router, prefix="/v1")
    app.include_router(health_router)

    return app
