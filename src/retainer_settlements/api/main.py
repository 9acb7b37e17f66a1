"""FastAPI application for the retainer settlements service."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from ..clients.postgres_client import PostgresClient
from ..repository import SettlementRepository
from ..session import SessionRegistry
from .config import get_settings
from .errors import register_error_handlers
from .routes.health import router as health_router
from .routes.invoices import router as invoices_router
from .routes.settlements import router as settlements_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the Postgres client at startup, dispose it at shutdown."""
    settings = get_settings()

    logger.info("lifespan.startup")

    postgres = PostgresClient(settings.DATABASE_URL)
    await postgres.connect()
    if not await postgres.verify_connectivity():
        logger.warning("lifespan.postgres_connectivity_failed")

    # Store on app.state for request handlers
    app.state.postgres = postgres
    app.state.sessions = SessionRegistry(SettlementRepository(postgres))

    logger.info("lifespan.ready")
    yield

    logger.info("lifespan.shutdown")
    await postgres.close()


app = FastAPI(
    title="retainer-settlements",
    description="Settlement pipeline and invoicing for retainer deals",
    lifespan=lifespan,
)

register_error_handlers(app)
app.include_router(health_router)
app.include_router(settlements_router)
app.include_router(invoices_router)
