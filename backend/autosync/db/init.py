import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from beanie import init_beanie

from autosync.config import settings
from autosync.models.lead import LeadModel

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def get_database() -> AsyncIOMotorDatabase:
    if _client is None:
        raise RuntimeError("Database is not initialized; call init_db() first")
    return _client[settings.DB_NAME]


async def init_db():
    """
    Connect to MongoDB and register the Beanie document models.

    Motor clients are bound to the running event loop, so the Celery worker
    calls this again inside every asyncio.run().
    """
    global _client
    try:
        logger.info("Initializing database connection...")
        client = AsyncIOMotorClient(settings.MONGO_URI, tz_aware=True)

        await client.admin.command("ping")
        logger.info("MongoDB connection test successful.")

        await init_beanie(
            database=client[settings.DB_NAME],
            document_models=[LeadModel],
        )
        _client = client
        logger.info("MongoDB connection established and Beanie initialized.")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)
        raise
