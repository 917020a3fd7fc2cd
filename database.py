"""
Database helpers

Thin wrappers around the MongoDB client. Every collection name is the
lowercase name of its schema class in ``schemas.py``.
"""
import logging
import re
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

import config

logger = logging.getLogger(__name__)

client = MongoClient(config.DATABASE_URL) if config.DATABASE_URL else None
db = client[config.DATABASE_NAME] if client is not None else None

USER_PUBLIC_FIELDS = {"name": 1, "username": 1, "picture": 1, "clerk_id": 1}


def collection(name: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db[name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_document(collection_name: str, data: Union[BaseModel, dict], session=None) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        data = data.model_dump()
    doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = collection(collection_name).insert_one(doc, session=session)
    return str(result.inserted_id)


def to_object_id(value: str, what: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except Exception:
        raise HTTPException(status_code=400, detail=f"Invalid {what}")


def get_or_404(collection_name: str, item_id: str, detail: str, projection: Optional[dict] = None) -> dict:
    doc = collection(collection_name).find_one({"_id": to_object_id(item_id)}, projection)
    if not doc:
        raise HTTPException(status_code=404, detail=detail)
    return doc


def serialize(value: Any) -> Any:
    """Render ObjectIds as strings, recursing through lists and dicts."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    return value


def populate(docs: Iterable[dict], field: str, collection_name: str, projection: Optional[dict] = None) -> List[dict]:
    """Replace the id (or list of ids) stored under ``field`` with the referenced documents.

    Ids that no longer resolve are dropped from lists and left as-is for
    single references.
    """
    docs = list(docs)
    wanted = set()
    for doc in docs:
        ref = doc.get(field)
        refs = ref if isinstance(ref, list) else [ref]
        for r in refs:
            if r and ObjectId.is_valid(str(r)):
                wanted.add(ObjectId(str(r)))
    if not wanted:
        return docs

    found = {
        str(d["_id"]): d
        for d in collection(collection_name).find({"_id": {"$in": list(wanted)}}, projection)
    }
    for doc in docs:
        ref = doc.get(field)
        if isinstance(ref, list):
            doc[field] = [found[str(r)] for r in ref if str(r) in found]
        elif ref is not None:
            doc[field] = found.get(str(ref), ref)
    return docs


@contextmanager
def transaction():
    """Yield a session bound to a transaction, or None when transactions are off."""
    if not config.MONGO_TRANSACTIONS or client is None:
        yield None
        return
    with client.start_session() as session:
        with session.start_transaction():
            yield session


def slugify(text: str) -> str:
    text = text.lower().strip()
    text = re.sub(r"[^a-z0-9\s-]", "", text)
    text = re.sub(r"[\s-]+", "-", text)
    return text.strip("-")


def unique_slug(collection_name: str, title: str, exclude_id: Optional[ObjectId] = None) -> str:
    base = slugify(title)[:120] or "untitled"
    slug = base
    suffix = 2
    while True:
        query: Dict[str, Any] = {"slug": slug}
        if exclude_id is not None:
            query["_id"] = {"$ne": exclude_id}
        if not collection(collection_name).find_one(query, {"_id": 1}):
            return slug
        slug = f"{base}-{suffix}"
        suffix += 1


def ensure_indexes():
    collection("knowledgebasearticle").create_index([("slug", ASCENDING)], unique=True)
    collection("codechallenge").create_index([("slug", ASCENDING)], unique=True)
    collection("user").create_index([("clerk_id", ASCENDING)], unique=True)
    collection("user").create_index([("username", ASCENDING)], unique=True)
    collection("expertprofile").create_index([("user", ASCENDING)], unique=True)
    collection("expertavailability").create_index([("expert", ASCENDING), ("date", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", db.name)


def utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo stores naive UTC datetimes; normalize query values to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_day(value: Union[date, datetime]) -> datetime:
    return datetime(value.year, value.month, value.day)
