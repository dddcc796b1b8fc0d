"""Main FastAPI application."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..models.base import SessionLocal, create_tables
from .endpoints import router as api_router

logger = logging.getLogger(__name__)

# Create tables on startup
create_tables()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load the demo catalogue into an empty database when asked to."""
    if os.getenv("METAPORTAL_SEED_DEMO", "false").lower() == "true":
        from ..seed import seed_if_empty

        db = SessionLocal()
        try:
            seed_if_empty(db)
        finally:
            db.close()
    yield


app = FastAPI(
    title="MetaPortal",
    description="A metadata portal for database schemas, column lineage and change tracking",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(api_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "metaportal"}
