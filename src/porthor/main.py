"""Application definition for Porthor."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi
from safir.fastapi import ClientRequestError, client_request_error_handler
from safir.logging import configure_uvicorn_logging
from safir.middleware.x_forwarded import XForwardedMiddleware
from safir.slack.webhook import SlackRouteErrorHandler

from . import __version__
from .dependencies.config import config_dependency
from .handlers import internal, login

__all__ = ["create_app", "create_openapi"]


def create_app(*, load_config: bool = True) -> FastAPI:
    """Create the FastAPI application.

    This is in a function rather than using a global variable (as is more
    typical for FastAPI) because some middleware depends on configuration
    settings and we therefore want to recreate the application between tests.

    Parameters
    ----------
    load_config
        If set to `False`, do not try to load the configuration. Configure
        `~safir.middleware.x_forwarded.XForwardedMiddleware` with the default
        set of proxy IP addresses. This is used primarily for OpenAPI
        schema generation, where constructing the app is required but the
        configuration won't matter.

    Raises
    ------
    ConfigurationError
        Raised if the configuration could not be loaded.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        config = config_dependency.config()
        logger = structlog.get_logger("porthor")
        logger.info("Starting Porthor", ldap_url=str(config.ldap.url))
        yield

    app = FastAPI(
        title="Porthor",
        description=(
            "Porthor authenticates users against an LDAP directory and"
            " classifies them as administrators or regular users based on"
            " their group memberships."
        ),
        version=__version__,
        tags_metadata=[
            {
                "name": "user",
                "description": "APIs that can be used by regular users.",
            },
            {
                "name": "internal",
                "description": (
                    "Internal routes used by the ingress and health checks."
                ),
            },
        ],
        openapi_url="/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add all of the routes.
    app.include_router(internal.router)
    app.include_router(login.router)

    # Load configuration if it is available to us and configure Uvicorn
    # logging.
    config = None
    if load_config:
        config = config_dependency.config()
        configure_uvicorn_logging()

    # Install the middleware.
    if config:
        app.add_middleware(
            XForwardedMiddleware,
            proxies=config.proxies,  # type: ignore[arg-type] # needs Safir fix
        )

    # Configure Slack alerts.
    if config and config.slack_alerts and config.slack_webhook:
        logger = structlog.get_logger("porthor")
        SlackRouteErrorHandler.initialize(
            config.slack_webhook, "Porthor", logger
        )
        logger.debug("Initialized Slack webhook")

    # Handle exceptions descended from ClientRequestError.
    app.exception_handler(ClientRequestError)(client_request_error_handler)

    return app


def create_openapi(*, add_back_link: bool = False) -> str:
    """Generate the OpenAPI schema.

    Parameters
    ----------
    add_back_link
        Whether to add a back link to the parent page to the description.
        This is useful when the schema will be rendered as part of the
        documentation.

    Returns
    -------
    str
        OpenAPI schema as serialized JSON.
    """
    app = create_app(load_config=False)
    description = app.description
    if add_back_link:
        description += "\n\n[Return to Porthor documentation](.)."
    schema = get_openapi(
        title=app.title,
        description=description,
        version=app.version,
        routes=app.routes,
    )
    return json.dumps(schema)
