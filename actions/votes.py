"""
Vote sets are arrays of user ids; a count is the array's length.

A toggle is a single conditional update per call: casting a vote adds the
user with ``$addToSet`` only while they are absent from the set, pulling them
from the opposite set in the same write; casting it again retracts it only
while they are present. The document returned by that write is the state
before it, so two identical concurrent calls cannot both report ``added``.
"""
from typing import Tuple

from fastapi import HTTPException

from database import collection, to_object_id

ADDED = "added"
REMOVED = "removed"
SWITCHED = "switched"
UNCHANGED = "unchanged"

OPPOSITE = {"upvotes": "downvotes", "downvotes": "upvotes"}


def toggle_vote(collection_name: str, item_id: str, user_id: str, field: str, detail: str) -> Tuple[dict, str]:
    """Toggle ``user_id`` in ``field`` and return (document before the write, outcome)."""
    other = OPPOSITE[field]
    col = collection(collection_name)
    oid = to_object_id(item_id)
    projection = {field: 1, other: 1, "author": 1}

    doc = col.find_one_and_update({"_id": oid, field: user_id}, {"$pull": {field: user_id}}, projection)
    if doc:
        return doc, REMOVED

    doc = col.find_one_and_update(
        {"_id": oid, field: {"$ne": user_id}},
        {"$addToSet": {field: user_id}, "$pull": {other: user_id}},
        projection,
    )
    if doc:
        return doc, SWITCHED if user_id in doc.get(other, []) else ADDED

    # a concurrent toggle changed the set between the two writes
    doc = col.find_one({"_id": oid}, projection)
    if not doc:
        raise HTTPException(status_code=404, detail=detail)
    return doc, UNCHANGED


def vote_counts(collection_name: str, item_id: str) -> dict:
    doc = collection(collection_name).find_one({"_id": to_object_id(item_id)}, {"upvotes": 1, "downvotes": 1}) or {}
    return {
        "upvotes": len(doc.get("upvotes", [])),
        "downvotes": len(doc.get("downvotes", [])),
    }
