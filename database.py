from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_NAME, DATABASE_URL
from errors import StorageError

client: Optional[MongoClient] = MongoClient(DATABASE_URL) if DATABASE_URL else None
db: Optional[Database] = client[DATABASE_NAME] if client is not None else None


def get_db() -> Database:
    if db is None:
        raise StorageError("Database not configured")
    return db


def to_obj_id(id_str: Any) -> Optional[ObjectId]:
    """Parse an id, returning None when it is not a valid ObjectId."""
    if isinstance(id_str, ObjectId):
        return id_str
    if id_str is None:
        return None
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def sanitize(doc: Any) -> Any:
    """Make a document JSON friendly: `_id` becomes `id`, ObjectIds become strings."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [sanitize(item) for item in doc]
    if not isinstance(doc, dict):
        return doc
    d: Dict[str, Any] = {}
    for key, value in doc.items():
        d["id" if key == "_id" else key] = sanitize(value)
    return d
