"""
Database connection and Beanie ODM initialization.

Beanie is an async ODM for MongoDB built on Motor and Pydantic.
We initialize it once at startup and close the client at shutdown.
"""

import logging
from typing import List, Type

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from callisto.config import Settings
from callisto.models.category import Category
from callisto.models.learning_item import LearningItem
from callisto.models.user import User

logger = logging.getLogger(__name__)

# Document models that Beanie will manage (collections + indexes)
DOCUMENT_MODELS: List[Type] = [User, Category, LearningItem]


async def init_models(database) -> None:
    """Register document models on an already-open database handle."""
    await init_beanie(database=database, document_models=DOCUMENT_MODELS)


async def connect_to_mongo(settings: Settings) -> AsyncIOMotorClient:
    """
    Create Motor client and initialize Beanie with document models.
    Called once at application startup; the caller keeps the client.
    """
    client = AsyncIOMotorClient(settings.mongodb_url)
    await init_models(client[settings.mongodb_database])
    logger.info("MongoDB connection established; Beanie initialized.")
    return client


def close_mongo_connection(client: AsyncIOMotorClient) -> None:
    """Close the Motor connection pool on application shutdown."""
    logger.info("Closing MongoDB connection.")
    client.close()
