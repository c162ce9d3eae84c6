"""
Database helpers

MongoDB connection shared by the API. `db` is None when no DATABASE_URL is
configured; routes get the handle through the `get_db` dependency so tests can
swap in their own database.
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGO_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "pearl_jewels")

client: Optional[MongoClient] = None
db: Optional[Database] = None

if DATABASE_URL:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not available")
    return db


def ensure_indexes(database: Database) -> None:
    try:
        database["user"].create_index([("email", ASCENDING)], unique=True)
    except PyMongoError as e:
        logger.warning("Unable to ensure user email index: %s", e)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert one document, stamping created_at/updated_at. Returns the new id as a string."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(database: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.get("_id")
    if isinstance(_id, ObjectId):
        # products carry their own numeric catalog id
        if "id" in doc:
            doc["_id"] = str(_id)
        else:
            doc["id"] = str(_id)
            del doc["_id"]
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc
