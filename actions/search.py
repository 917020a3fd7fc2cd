import logging
import re
from typing import Optional

from fastapi import APIRouter, Query
from pymongo.errors import PyMongoError

from database import collection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["search"])

# (type, collection, searched field)
SEARCHABLE = [
    ("question", "question", "title"),
    ("user", "user", "name"),
    ("answer", "answer", "content"),
    ("tag", "tag", "name"),
]
PER_TYPE_LIMIT = 2
SINGLE_TYPE_LIMIT = 8


def _result(kind: str, field: str, doc: dict, q: str) -> dict:
    if kind == "answer":
        # answers link to their question
        return {"title": f"Answer containing {q}", "type": kind, "id": str(doc.get("question"))}
    if kind == "user":
        return {"title": doc.get(field), "type": kind, "id": doc.get("clerk_id")}
    return {"title": doc.get(field), "type": kind, "id": str(doc["_id"])}


@router.get("/search")
def global_search(q: str = Query(..., min_length=1), type: Optional[str] = None):
    pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
    wanted = (type or "").lower()
    targets = [s for s in SEARCHABLE if s[0] == wanted]
    limit = SINGLE_TYPE_LIMIT
    if not targets:
        targets, limit = SEARCHABLE, PER_TYPE_LIMIT

    results = []
    for kind, collection_name, field in targets:
        docs = collection(collection_name).find({field: pattern}).sort("_id", -1).limit(limit)
        results.extend(_result(kind, field, doc, q) for doc in docs)
    return {"results": results}


@router.get("/stats")
def global_stats():
    try:
        return {
            "questions": collection("question").count_documents({}),
            "answers": collection("answer").count_documents({}),
            "users": collection("user").count_documents({}),
            "tags": collection("tag").count_documents({}),
        }
    except PyMongoError:
        logger.exception("Error fetching global stats")
        return {"questions": 0, "answers": 0, "users": 0, "tags": 0}
