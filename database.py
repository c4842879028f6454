import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import get_settings

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        settings = get_settings()
        _client = MongoClient(settings.database_url, tz_aware=True)
    return _client


def get_db() -> Database:
    return get_client()[get_settings().database_name]


def ensure_indexes(db: Database) -> None:
    # Uniqueness lives in the store so concurrent registrations cannot race
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["session"].create_index([("token", ASCENDING)], unique=True)
    db["workspace"].create_index([("owner_id", ASCENDING)])
    db["workspace"].create_index([("members.user_email", ASCENDING)])
    db["party"].create_index([("workspace_id", ASCENDING), ("created_at", DESCENDING)])
    db["transaction"].create_index(
        [("workspace_id", ASCENDING), ("party_id", ASCENDING), ("date", DESCENDING)]
    )
    logger.info("Indexes ensured on database %s", db.name)


def create_document(db: Database, collection_name: str, data) -> str:
    """Insert a pydantic model (or dict) with timestamps, returning the new id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(exclude={"id"})
    else:
        doc = dict(data)
        doc.pop("id", None)
    now = datetime.now(timezone.utc)
    if doc.get("created_at") is None:
        doc["created_at"] = now
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[dict] = None,
                  sort: Optional[list] = None, limit: Optional[int] = None) -> list:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit is not None:
        cursor = cursor.limit(limit)
    return list(cursor)
