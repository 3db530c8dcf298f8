# bizhub/core/counters.py

from fastapi import Depends
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from bizhub.core.database import get_database
from bizhub.core.repository import utc_now

COUNTERS_COLLECTION = "counters"


class CounterService:
    """Yearly sequential references such as SAL-2026-00042."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.collection = db[COUNTERS_COLLECTION]

    async def _next_sequence(self, name: str) -> int:
        log = logger.bind(counter_name=name)
        try:
            counter = await self.collection.find_one_and_update(
                {"_id": name},
                {"$inc": {"sequence_value": 1}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except Exception as e:
            log.exception(f"Database error while incrementing counter '{name}'")
            raise RuntimeError(f"Database error accessing counter '{name}'") from e
        if not counter or "sequence_value" not in counter:
            log.critical(f"Counter upsert returned unexpected value: {counter}")
            raise RuntimeError(f"Failed to reliably get or create counter '{name}'")
        return counter["sequence_value"]

    async def generate_reference(self, prefix: str) -> str:
        if not prefix or not prefix.isalnum():
            raise ValueError("Prefix must be a non-empty alphanumeric string.")
        year = utc_now().year
        sequence = await self._next_sequence(f"{prefix.lower()}_{year}_counter")
        ref_id = f"{prefix.upper()}-{year}-{sequence:05d}"
        logger.debug(f"Reference generated: {ref_id}")
        return ref_id


async def get_counter_service(db: AsyncIOMotorDatabase = Depends(get_database)) -> CounterService:
    return CounterService(db)
