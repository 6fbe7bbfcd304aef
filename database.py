"""
MongoDB access for the Blog API.

Route handlers receive the database handle through the ``get_db``
dependency so tests can swap in an in-memory database.
"""
import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING, TEXT, MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

USERS = "user"
BLOGS = "blog"


@lru_cache
def get_client() -> MongoClient:
    return MongoClient(settings.DATABASE_URL, tz_aware=True)


def get_db() -> Database:
    return get_client()[settings.DATABASE_NAME]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse a path or token value into an ObjectId, None when malformed."""
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def create_document(db: Database, collection_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert ``data`` stamped with created_at/updated_at and return the stored document."""
    now = utcnow()
    doc = {**data, "created_at": now, "updated_at": now}
    result = db[collection_name].insert_one(doc)
    doc["_id"] = result.inserted_id
    return doc


def ensure_indexes(db: Database) -> None:
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[USERS].create_index([("username", ASCENDING)], unique=True)
    db[BLOGS].create_index([("slug", ASCENDING)], unique=True)
    db[BLOGS].create_index([("title", TEXT), ("content", TEXT), ("tags", TEXT)])
    db[BLOGS].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    db[BLOGS].create_index([("author", ASCENDING), ("created_at", DESCENDING)])
    logger.info("MongoDB indexes ensured on %s", db.name)
