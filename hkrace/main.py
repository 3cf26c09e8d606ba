"""FastAPI application entry point for hkrace."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from hkrace.api import analysis, scoring, strategies
from hkrace.config import settings
from hkrace.models.database import init_db

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown events."""
    logger.info("Starting hkrace...")
    await init_db()
    logger.info(f"Database initialized at {settings.db_path}")
    yield
    logger.info("Shutting down hkrace")


app = FastAPI(
    title="hkrace",
    description="Hong Kong racing pick statistics, parlay simulation and runner scoring",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(analysis.router, prefix="/api/analysis", tags=["analysis"])
app.include_router(scoring.router, prefix="/api/scoring", tags=["scoring"])
app.include_router(strategies.router, prefix="/api/strategies", tags=["strategies"])


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hkrace.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
