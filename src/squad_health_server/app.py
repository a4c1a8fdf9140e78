"""Litestar application factory."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog
from advanced_alchemy.config.asyncio import AsyncSessionConfig
from litestar import Litestar
from litestar.channels import ChannelsPlugin
from litestar.channels.backends.memory import MemoryChannelsBackend
from litestar.contrib.sqlalchemy.plugins import SQLAlchemyAsyncConfig, SQLAlchemyPlugin
from litestar.datastructures import State
from litestar.openapi import OpenAPIConfig
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from squad_health_server import __version__
from squad_health_server.api import api_routers
from squad_health_server.core import database
from squad_health_server.core.config import settings
from squad_health_server.core.errors import exception_handlers

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


def _lifespan(
    engine: AsyncEngine, owns_engine: bool
) -> Callable[[Litestar], AbstractAsyncContextManager[None]]:
    @asynccontextmanager
    async def lifespan(app: Litestar) -> AsyncIterator[None]:
        """Check the schema on startup and release the pool on shutdown."""
        logger.info(
            "Starting squad-health-server",
            version=__version__,
            legacy_role_fallback=settings.legacy_role_fallback,
        )
        await database.init_database(engine)

        yield

        if owns_engine:
            await database.close_database(engine)
        logger.info("Shutdown complete")

    return lifespan


def create_app(engine: AsyncEngine | None = None) -> Litestar:
    """Create Litestar application.

    Args:
        engine: Database engine (defaults to the configured global engine)

    Returns:
        Configured Litestar app instance
    """
    owns_engine = engine is None
    engine = engine or database.engine

    # Guards resolve roles outside the request-scoped session
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    return Litestar(
        route_handlers=api_routers,
        lifespan=[_lifespan(engine, owns_engine)],
        state=State({"session_maker": session_maker}),
        openapi_config=OpenAPIConfig(
            title="squad-health-server API",
            version=__version__,
            description="Team health management: metrics, assessments, training programs and messaging",
        ),
        plugins=[
            SQLAlchemyPlugin(
                config=SQLAlchemyAsyncConfig(
                    engine_instance=engine,
                    session_dependency_key="session",
                    session_config=AsyncSessionConfig(expire_on_commit=False),
                ),
            ),
            ChannelsPlugin(backend=MemoryChannelsBackend(), arbitrary_channels_allowed=True),
        ],
        exception_handlers=exception_handlers,
        debug=settings.log_level == "DEBUG",
    )


# Application instance
app = create_app()
