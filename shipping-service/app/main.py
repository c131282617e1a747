# app/main.py
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from app import models  # noqa: F401  registers every table on Base.metadata
from app.api.v1.api import api_router
from app.core.config import settings
from app.db.base_class import Base
from app.db.session import engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables checked and created if necessary.")
    yield
    logger.info("Application shutting down...")


app = FastAPI(
    title="Shipping Microservice",
    version="1.0.0",
    description="""
        Read-only access to shipments created from completed orders.

        Shipments are written by the order-completed consumer
        (`run_order_completed_consumer.py`), never through this API.
        """,
    lifespan=lifespan,
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
def health_check():
    return {
        "status": "ok",
        "service": settings.SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
