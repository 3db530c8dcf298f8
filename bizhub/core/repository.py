# bizhub/core/repository.py

from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from bson import ObjectId
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import IndexModel
from pymongo.errors import DuplicateKeyError
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult

ModelType = TypeVar("ModelType", bound=BaseModel)


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what the driver hands back from BSON dates."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Converts input to an ObjectId, returning None if it's not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class BaseRepository(Generic[ModelType]):
    """Base MongoDB repository mapping documents to a Pydantic model."""

    model: Type[ModelType]
    collection_name: str
    indexes: List[IndexModel] = []

    def __init__(self, db: AsyncIOMotorDatabase):
        if not getattr(self, "collection_name", None):
            raise AttributeError("Repository subclass must define a 'collection_name'")
        if not getattr(self, "model", None):
            raise AttributeError("Repository subclass must define a Pydantic 'model'")
        self.db = db
        self.collection = db[self.collection_name]

    _to_objectid = staticmethod(to_object_id)

    def _handle_db_exception(self, e: Exception, operation: str, doc_id: Any = None, query: Optional[Dict] = None):
        """Logs and re-raises driver errors as ValueError (duplicate key) or RuntimeError."""
        context = f"op='{operation}' coll='{self.collection_name}'"
        if doc_id is not None:
            context += f" id='{doc_id}'"
        if query:
            context += f" query='{str(query)[:100]}'"

        if isinstance(e, DuplicateKeyError):
            dup_key_info = (e.details or {}).get("keyValue", {})
            logger.error(f"DB Error during {context}: duplicate key {dup_key_info}")
            raise ValueError(f"Duplicate key error: Field(s) {list(dup_key_info.keys())} must be unique.") from e
        logger.exception(f"DB Error during {context}: {e}")
        raise RuntimeError(f"Database error during operation: {operation}") from e

    def _validate(self, document: Optional[Dict[str, Any]]) -> Optional[ModelType]:
        return self.model.model_validate(document) if document else None

    async def ensure_indexes(self):
        if self.indexes:
            await self.collection.create_indexes(self.indexes)
            logger.debug(f"Indexes ensured for collection '{self.collection_name}'")

    async def get_by_id(self, id: str | ObjectId) -> Optional[ModelType]:
        obj_id = self._to_objectid(id)
        if not obj_id:
            return None
        try:
            return self._validate(await self.collection.find_one({"_id": obj_id}))
        except Exception as e:
            self._handle_db_exception(e, "get_by_id", obj_id)

    async def get_by(self, query: Dict[str, Any], sort: Optional[List[Tuple[str, int]]] = None) -> Optional[ModelType]:
        """Returns the FIRST document matching the query (in sort order when given)."""
        try:
            return self._validate(await self.collection.find_one(query, sort=sort))
        except Exception as e:
            self._handle_db_exception(e, "get_by", query=query)

    async def list_by(
        self,
        query: Optional[Dict[str, Any]] = None,
        skip: int = 0,
        limit: int = 100,
        sort: Optional[List[Tuple[str, int]]] = None,
    ) -> List[ModelType]:
        """Lists documents; limit=0 returns everything."""
        query = query or {}
        try:
            cursor = self.collection.find(query)
            if sort:
                cursor = cursor.sort(sort)
            if skip > 0:
                cursor = cursor.skip(skip)
            if limit > 0:
                cursor = cursor.limit(limit)
            documents = await cursor.to_list(length=limit if limit > 0 else None)
            return [self.model.model_validate(doc) for doc in documents]
        except Exception as e:
            self._handle_db_exception(e, "list_by", query=query)

    async def create(self, data_in: BaseModel | Dict[str, Any]) -> ModelType:
        if isinstance(data_in, BaseModel):
            data = data_in.model_dump(by_alias=False)
        else:
            data = dict(data_in)

        now = utc_now()
        data.setdefault("created_at", now)
        data.setdefault("updated_at", now)
        data.pop("_id", None)
        data.pop("id", None)

        try:
            result: InsertOneResult = await self.collection.insert_one(data)
        except Exception as e:
            self._handle_db_exception(e, "create")

        created = await self.get_by_id(result.inserted_id)
        if created is None:
            logger.critical(f"Failed to retrieve document after insertion! ID: {result.inserted_id}, Collection: {self.collection_name}")
            raise RuntimeError("Failed to retrieve document after creation.")
        return created

    async def update(self, id: str | ObjectId, data_in: BaseModel | Dict[str, Any]) -> Optional[ModelType]:
        """Applies a $set update and returns the fresh document (None when missing)."""
        obj_id = self._to_objectid(id)
        if not obj_id:
            return None

        if isinstance(data_in, BaseModel):
            data = data_in.model_dump(exclude_unset=True, by_alias=False)
        else:
            data = dict(data_in)

        for field in ("_id", "id", "created_at"):
            data.pop(field, None)
        if not data:
            return await self.get_by_id(obj_id)

        data["updated_at"] = utc_now()
        try:
            result: UpdateResult = await self.collection.update_one({"_id": obj_id}, {"$set": data})
        except Exception as e:
            self._handle_db_exception(e, "update", obj_id)

        if result.matched_count == 0:
            logger.warning(f"Document not found for update: ID {id}, Collection: {self.collection_name}")
            return None
        return await self.get_by_id(obj_id)

    async def update_many(self, query: Dict[str, Any], values: Dict[str, Any]) -> int:
        try:
            result: UpdateResult = await self.collection.update_many(
                query, {"$set": {**values, "updated_at": utc_now()}}
            )
            return result.modified_count
        except Exception as e:
            self._handle_db_exception(e, "update_many", query=query)

    async def delete(self, id: str | ObjectId) -> bool:
        obj_id = self._to_objectid(id)
        if not obj_id:
            return False
        try:
            result: DeleteResult = await self.collection.delete_one({"_id": obj_id})
        except Exception as e:
            self._handle_db_exception(e, "delete", obj_id)
        deleted = result.deleted_count > 0
        if deleted:
            logger.info(f"Document deleted: ID {id}, Collection: {self.collection_name}")
        return deleted

    async def count(self, query: Optional[Dict[str, Any]] = None) -> int:
        query = query or {}
        try:
            return await self.collection.count_documents(query)
        except Exception as e:
            self._handle_db_exception(e, "count", query=query)

    async def aggregate(self, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        try:
            cursor = self.collection.aggregate(pipeline)
            return await cursor.to_list(length=None)
        except Exception as e:
            self._handle_db_exception(e, "aggregate")
