from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) to
improve testability and separation of concerns compared to a monolithic main.
"""

from fastapi import FastAPI

from app.api.routes import health_router, notes_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Ephemeral Notes API",
        description=(
            "Anonymous, short-lived note store. Notes are written under an "
            "8-character identifier (e.g. A3X9-K2M7) and can be read back by "
            "anyone holding it for 72 hours. Retrieval is rate limited per "
            "client, and repeated failed lookups trigger a temporary ban."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(notes_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (tags, retrieval errors and headers)
    apply_openapi_customizations(app)

    return app
