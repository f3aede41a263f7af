"""
MongoDB access helpers.

The client is created lazily from configuration and handed to route handlers
through the ``get_db`` dependency. Collection names are the lowercase of the
schema class name (e.g., MenuItem -> "menuitem").
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import get_config
from log import get_logger

logger = get_logger(__name__)

_client: Optional[MongoClient] = None


def get_db() -> Database:
    """Return the configured database, connecting on first use."""
    global _client
    config = get_config()
    if not config.database_url or not config.database_name:
        raise RuntimeError("DATABASE_URL and DATABASE_NAME must be set")
    if _client is None:
        logger.info(f"Connecting to MongoDB database {config.database_name}")
        _client = MongoClient(config.database_url)
    return _client[config.database_name]


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Coerce ``value`` to an ObjectId, returning None when it is not one."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(db: Database, collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize_doc(doc: Dict[str, Any]) -> Dict[str, Any]:
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    # Convert nested ObjectIds if any
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
        elif isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, dict):
            doc[k] = serialize_doc(v)
        elif isinstance(v, list):
            new_list = []
            for item in v:
                if isinstance(item, dict):
                    item = serialize_doc(item)
                elif isinstance(item, ObjectId):
                    item = str(item)
                new_list.append(item)
            doc[k] = new_list
    return doc
