"""
Card Trends — Application Entrypoint

Configures structlog, builds the async SQLAlchemy engine and wires the
aggregator, cache, store and service together.

Run via:
    python -m cardtrends.main api         # FastAPI read API + admin routes
    python -m cardtrends.main scheduler   # daily snapshot loop
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardtrends import __version__
from cardtrends.api.routes import router as market_trends_router
from cardtrends.config import settings
from cardtrends.engine.aggregator import TrendAggregator
from cardtrends.pipeline.scheduler import run_scheduler
from cardtrends.services.market_trends import MarketTrendsService
from cardtrends.services.trend_cache import TrendCache
from cardtrends.services.trend_store import TrendStore


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Configure stdlib logging first (for third-party libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database & Service Wiring
# ---------------------------------------------------------------------------


def create_db_engine(database_url: str | None = None) -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory.

    Returns:
        (engine, session_factory) tuple.
    """
    url = database_url or settings.DATABASE_URL
    # Managed Postgres often hands out postgres:// URLs
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(url, echo=False, pool_pre_ping=True)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_factory


def build_service(session_factory: async_sessionmaker[AsyncSession]) -> MarketTrendsService:
    """Compose the aggregator, cache and store into one service."""
    aggregator = TrendAggregator()
    return MarketTrendsService(
        aggregator=aggregator,
        cache=TrendCache(),
        store=TrendStore(session_factory, aggregator),
    )


async def check_database(session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Health check: fail fast if the database is unreachable."""
    logger = structlog.get_logger(__name__)
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
    logger.info("database_health_check_passed")


# ---------------------------------------------------------------------------
# FastAPI Application
# ---------------------------------------------------------------------------


def create_app(service: MarketTrendsService | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    With `service` given (tests), no database engine is created.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger = structlog.get_logger(__name__)
        engine = None
        if service is None:
            engine, session_factory = create_db_engine()
            app.state.trends_service = build_service(session_factory)
        else:
            app.state.trends_service = service
        logger.info("cardtrends_api_started", version=__version__)
        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()
            logger.info("cardtrends_api_stopped")

    app = FastAPI(
        title="Card Trends",
        description="Cached trading card market summaries and daily snapshots",
        version=__version__,
        lifespan=lifespan,
    )
    if service is not None:
        app.state.trends_service = service
    app.include_router(market_trends_router)

    @app.get("/health")
    async def health_check() -> dict[str, Any]:
        trends_service: MarketTrendsService = app.state.trends_service
        age = trends_service.cache.age_seconds()
        return {
            "status": "healthy",
            "version": __version__,
            "cache_ttl_seconds": trends_service.cache.ttl_seconds,
            "cache_age_seconds": round(age, 1) if age is not None else None,
        }

    return app


# ---------------------------------------------------------------------------
# Scheduler Entry
# ---------------------------------------------------------------------------


async def run_scheduler_main() -> None:
    """Initialize the database, then run the daily scheduler until signaled."""
    logger = structlog.get_logger(__name__)
    logger.info("cardtrends_scheduler_startup_begin", version=__version__)

    if not settings.EBAY_APP_ID or not settings.EBAY_CERT_ID:
        logger.warning("config_ebay_credentials_missing", note="daily updates will store nothing")

    engine, session_factory = create_db_engine()
    try:
        await check_database(session_factory)
        await run_scheduler(build_service(session_factory))
    except Exception as e:
        logger.error(
            "cardtrends_scheduler_fatal_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await engine.dispose()
        logger.info("cardtrends_scheduler_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Card market trends service")
    parser.add_argument("command", choices=["api", "scheduler"])
    args = parser.parse_args(argv)

    configure_logging(settings.LOG_LEVEL)

    if args.command == "api":
        import uvicorn

        uvicorn.run(create_app(), host=settings.API_HOST, port=settings.API_PORT)
    else:
        asyncio.run(run_scheduler_main())


if __name__ == "__main__":
    main()
