from typing import Generator
from contextlib import asynccontextmanager

import pymongo
from pymongo.database import Database
from fastapi import FastAPI, Request

from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)


def connect(app: FastAPI):
    """Open the MongoDB client unless a database was already attached (tests)."""
    if getattr(app.state, "db", None) is not None:
        return None
    logger.info("Connecting to MongoDB")
    client = pymongo.MongoClient(Config.MONGODB_URI)
    try:
        client.admin.command("ping")
        logger.info("MongoDB ping succeeded")
    except Exception as e:  # pragma: no cover
        logger.warning("MongoDB ping failed: %s", e)

    app.state.mongo_client = client
    app.state.db = client[Config.MONGODB_DB]
    return client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle MongoDB connection lifecycle for FastAPI app."""
    client = connect(app)

    yield  # Hand control back to FastAPI

    if client is not None:
        logger.info("Closing MongoDB connection")
        client.close()


def get_db(request: Request) -> Generator[Database, None, None]:
    """Dependency to provide MongoDB Database instance."""
    db = getattr(request.app.state, "db", None)
    if db is None:
        # Fallback: create temp client if not initialized
        client = pymongo.MongoClient(Config.MONGODB_URI)
        try:
            yield client[Config.MONGODB_DB]
        finally:
            client.close()
    else:
        yield db
