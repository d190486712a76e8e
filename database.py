"""
Database Helper Functions

Async MongoDB helpers used by the API endpoints. The connection is opened
lazily by `get_db` and reused for the lifetime of the process; every helper
takes the database handle explicitly so endpoints can receive it through
FastAPI dependency injection (and tests can swap it out).
"""

import logging
from datetime import datetime, timezone
from typing import Union, Optional, Dict, Any, List

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import BaseModel
from pymongo import ReturnDocument

from config import settings

logger = logging.getLogger(__name__)

_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


async def get_db() -> AsyncIOMotorDatabase:
    global _client, _db
    if _db is None:
        _client = AsyncIOMotorClient(
            settings.database_url,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
            tz_aware=True,
        )
        _db = _client[settings.database_name]
        logger.info("Opened MongoDB client for database %s", settings.database_name)
    return _db


def reset_db() -> None:
    """Drop the cached client so the next `get_db` call reconnects."""
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("Closed MongoDB client")
    _client = None
    _db = None


async def ping(db) -> bool:
    try:
        await db.command("ping")
        return True
    except Exception as e:
        logger.warning("Database ping failed: %s", e)
        return False


def now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(_id: Any) -> Optional[ObjectId]:
    if isinstance(_id, ObjectId):
        return _id
    try:
        return ObjectId(_id)
    except (InvalidId, TypeError):
        return None


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    return dict(data)


# CRUD helpers

async def create_document(db, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    payload = _to_dict(data)
    stamp = now()
    payload["createdAt"] = stamp
    payload["updatedAt"] = stamp
    result = await db[collection_name].insert_one(payload)
    payload["_id"] = result.inserted_id
    return serialize_doc(payload)


async def get_documents(db, collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(int(limit))
    docs = await cursor.to_list(length=None)
    return [serialize_doc(doc) for doc in docs]


async def get_document_by_id(db, collection_name: str, _id: str) -> Optional[dict]:
    oid = to_object_id(_id)
    if oid is None:
        return None
    doc = await db[collection_name].find_one({"_id": oid})
    return serialize_doc(doc) if doc else None


async def update_document(db, collection_name: str, _id: str, update_data: Dict[str, Any]) -> Optional[dict]:
    """Apply a `$set` and return the updated document, or None if it does not exist."""
    oid = to_object_id(_id)
    if oid is None:
        return None
    update = {"$set": _to_dict(update_data)}
    update["$set"]["updatedAt"] = now()
    doc = await db[collection_name].find_one_and_update(
        {"_id": oid}, update, return_document=ReturnDocument.AFTER
    )
    return serialize_doc(doc) if doc else None


async def delete_document(db, collection_name: str, _id: str) -> bool:
    oid = to_object_id(_id)
    if oid is None:
        return False
    result = await db[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0


# Utility

def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["_id"] = str(d["_id"])  # convert ObjectId to string
    return d
