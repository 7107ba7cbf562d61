"""FastAPI application entrypoint and configuration.

This module provides the application factory that configures logging,
sets up CORS middleware, includes the import and layer catalog routers,
and exposes a health check endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn geoimport.main:app --reload

    Or imported and used programmatically:
        >>> from geoimport.main import app
        >>> # Use app in ASGI server
"""

import fastapi
from fastapi.middleware import cors
from loguru import logger

from geoimport.api import imports, layers
from geoimport.core import config
from geoimport.core import logging as logging_config


def create_app() -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Configures loguru from settings, includes the import and layer
    routers, adds CORS middleware and a health check endpoint.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = config.get_settings()
    logging_config.configure_logging(settings)
    app = fastapi.FastAPI(title="Geodata Import", version="0.1.0")

    app.include_router(imports.router)
    app.include_router(layers.router)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    logger.info(
        f"Import service ready with handlers: {', '.join(settings.handler_order)}"
    )
    return app


app = create_app()
