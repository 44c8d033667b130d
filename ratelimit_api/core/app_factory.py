"""Application factory for the FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) so
tests can build isolated app instances.
"""

from __future__ import annotations

from fastapi import FastAPI

from ratelimit_api.api.routes import health_router, quota_router
from ratelimit_api.core.config import settings
from ratelimit_api.core.exception_handlers import setup_exception_handlers
from ratelimit_api.core.logging import configure_logging
from ratelimit_api.core.middleware import request_id_middleware
from ratelimit_api.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Rate Limit API",
        description=(
            "Per-client fixed-window rate limiting backed by a shared Redis "
            "counter store. Multiple stateless instances agree on each "
            "client's consumption without talking to each other."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(quota_router)
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
