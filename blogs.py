"""Blog posts."""
from typing import Any, Dict, List

from pymongo.database import Database

from database import sanitize, to_obj_id
from errors import NotFoundError
from schemas import Blog, BlogRequest


def create_blog(db: Database, fields: BlogRequest, author_id: str) -> Dict[str, Any]:
    doc = Blog(**fields.model_dump(), author=str(author_id)).model_dump()
    res = db["blog"].insert_one(doc)
    doc["_id"] = res.inserted_id
    return sanitize(doc)


def list_blogs(db: Database) -> List[Dict[str, Any]]:
    return [sanitize(b) for b in db["blog"].find({}).sort("createdAt", -1)]


def get_blog(db: Database, blog_id: str) -> Dict[str, Any]:
    oid = to_obj_id(blog_id)
    blog = db["blog"].find_one({"_id": oid}) if oid is not None else None
    if not blog:
        raise NotFoundError("Blog not found")
    return sanitize(blog)
