# bizhub/core/database.py

from contextlib import AbstractAsyncContextManager
from typing import Optional

from fastapi import HTTPException, status
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from bizhub.core.config import settings

DEFAULT_DB_NAME = "bizhub"


def parse_db_name(uri: str) -> str:
    """Extracts the database name from a mongodb:// URI path, falling back to the default."""
    without_scheme = uri.split("://", 1)[-1]
    if "/" not in without_scheme:
        return DEFAULT_DB_NAME
    path = without_scheme.split("/", 1)[1]
    db_name = path.split("?", 1)[0]
    if not db_name or "@" in db_name or len(db_name) > 63:
        return DEFAULT_DB_NAME
    return db_name


class MongoDbContext(AbstractAsyncContextManager):
    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        """Establishes and verifies the connection to MongoDB."""
        if self.client is not None and self.db is not None:
            logger.info("MongoDB connection already established.")
            return

        logger.info("Connecting to MongoDB...")
        try:
            self.client = AsyncIOMotorClient(
                settings.MONGODB_URI,
                uuidRepresentation="standard",
                serverSelectionTimeoutMS=5000,
            )
            await self.client.admin.command("ping")
            db_name = parse_db_name(settings.MONGODB_URI)
            self.db = self.client[db_name]
            logger.success(f"MongoDB connection successful to database '{db_name}'.")
        except Exception as e:
            logger.critical(f"FATAL: Failed to connect to MongoDB: {e}")
            self.client = None
            self.db = None
            raise ConnectionError(f"MongoDB connection failed: {e}") from e

    async def disconnect(self):
        if self.client is not None:
            logger.info("Closing MongoDB connection...")
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed.")

    def get_db(self) -> AsyncIOMotorDatabase:
        if self.db is None:
            logger.critical("Attempted to get MongoDB instance, but it's not available.")
            raise RuntimeError("MongoDB database is not connected or initialized.")
        return self.db


mongo_manager = MongoDbContext()


async def get_database() -> AsyncIOMotorDatabase:
    """FastAPI dependency returning the connected database."""
    try:
        return mongo_manager.get_db()
    except RuntimeError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database connection not available: {e}",
        )
