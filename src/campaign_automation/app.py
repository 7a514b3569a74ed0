"""Application entry point serving the campaign automation API.

Configures:
- **structlog** with JSON rendering (production) or colored console (development),
  optionally forwarding ERROR events to Sentry
- **SQLite** database holding the creator directory and the automation log
- **Capability registry** wired to the directory and the outreach client
- **Recovery** of sessions left RUNNING by a previous process
- **FastAPI** routes, health probes, request IDs and Prometheus metrics
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from campaign_automation.api import register_exception_handlers, router
from campaign_automation.audit.logger import AutomationLogger
from campaign_automation.audit.store import (
    AutomationLogStore,
    close_automation_db,
    init_automation_db,
)
from campaign_automation.capabilities.adapters import build_registry
from campaign_automation.config import Settings, get_settings, validate_credentials
from campaign_automation.directory.schema import init_directory_tables
from campaign_automation.directory.store import CreatorDirectory
from campaign_automation.health import register_health_routes
from campaign_automation.observability.metrics import setup_metrics
from campaign_automation.observability.middleware import RequestIdMiddleware
from campaign_automation.observability.sentry import get_sentry_processor, init_sentry
from campaign_automation.outreach.client import OutreachClient
from campaign_automation.pipeline.service import AutomationService
from campaign_automation.planning.client import get_anthropic_client
from campaign_automation.planning.strategy import (
    LLMOutreachStrategy,
    OutreachStrategy,
    TemplateStrategy,
)

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Insert the Sentry processor before the renderer.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_strategy(settings: Settings) -> OutreachStrategy:
    """Return the LLM strategy when enabled and keyed, else the template strategy."""
    api_key = settings.anthropic_api_key.get_secret_value()
    if settings.use_llm_composer and api_key:
        logger.info("outreach_strategy_selected", strategy="llm")
        return LLMOutreachStrategy(get_anthropic_client(api_key), cpm=settings.default_cpm)
    logger.info("outreach_strategy_selected", strategy="template")
    return TemplateStrategy(settings.default_cpm)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the database (directory and automation log tables), recovers
    sessions abandoned by a previous process, builds the outreach client,
    the capability registry, the planning strategy and the automation
    service.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {}

    # a. Database: automation log tables plus the directory tables
    db_path = settings.database_path
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db_conn = init_automation_db(db_path)
    init_directory_tables(db_conn)
    services["db_conn"] = db_conn

    # b. Automation log, with recovery of runs the last process left open
    automation_logger = AutomationLogger(AutomationLogStore(db_conn))
    services["automation_logger"] = automation_logger
    services["recovered_sessions"] = automation_logger.recover_abandoned_sessions()

    # c. Directory, outreach client and capability registry
    directory = CreatorDirectory(db_conn)
    services["directory"] = directory
    outreach_client = OutreachClient.from_settings(settings)
    services["outreach_client"] = outreach_client
    registry = build_registry(directory, outreach_client)
    services["registry"] = registry

    # d. Automation service
    services["automation_service"] = AutomationService(
        settings,
        registry,
        automation_logger,
        strategy=build_strategy(settings),
    )

    services["_settings"] = settings
    logger.info(
        "services_initialized",
        database=str(db_path),
        recovered_sessions=len(services["recovered_sessions"]),
    )
    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On shutdown: cancels runs still in progress, closes the outreach client
    and the database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    logger.info("FastAPI application starting")
    yield
    # Shutdown
    service = services.get("automation_service")
    if service is not None:
        await service.shutdown()
    outreach_client = services.get("outreach_client")
    if outreach_client is not None:
        await outreach_client.aclose()
    db_conn = services.get("db_conn")
    if db_conn is not None:
        close_automation_db(db_conn)
        logger.info("Automation database connection closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, automation routes, probes and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Campaign Automation", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(router)
    register_exception_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Configure logging (and Sentry, when a DSN is set)
    2. Validate credentials
    3. Initialize services
    4. Serve the FastAPI app with uvicorn
    """
    settings = get_settings()
    sentry_enabled = init_sentry(settings.sentry_dsn, production=settings.production)
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("Application starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script wrapper around :func:`main`."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
