import logging
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from database import collection, create_document, get_or_404, serialize, to_object_id, utc_naive, utcnow
from listing import EventFilters
from schemas import Event, EventStatusIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/events", tags=["events"])


@router.post("")
def submit_event(payload: Event):
    data = payload.model_dump()
    # submissions always wait for review
    data["status"] = "pending"
    data["start_date"] = utc_naive(payload.start_date)
    data["end_date"] = utc_naive(payload.end_date)
    event_id = create_document("event", data)
    logger.info("Event %s submitted by %s", event_id, payload.submitted_by)
    return serialize(collection("event").find_one({"_id": ObjectId(event_id)}))


@router.get("")
def list_events(
    q: Optional[str] = None,
    country: Optional[str] = None,
    event_type: Optional[str] = None,
    technologies: Optional[List[str]] = Query(None),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    status: str = "approved",
    page: int = Query(1, ge=1),
    page_size: int = Query(12, ge=1, le=100),
):
    filters = EventFilters(
        search_query=q, status=status, country=country, event_type=event_type,
        technologies=technologies or [], start_date=start_date, end_date=end_date,
        page=page, page_size=page_size,
    )
    events, is_next = filters.run(collection("event"))
    return {"events": serialize(events), "is_next": is_next}


@router.get("/countries")
def list_event_countries():
    countries = collection("event").distinct("country", {"status": "approved"})
    return {"countries": sorted(c for c in countries if c)}


@router.get("/technologies")
def list_event_technologies():
    technologies = collection("event").distinct("technologies", {"status": "approved"})
    return {"technologies": sorted(t for t in technologies if t)}


@router.get("/{event_id}")
def get_event(event_id: str):
    return serialize(get_or_404("event", event_id, "Event not found"))


@router.patch("/{event_id}/status")
def update_event_status(event_id: str, payload: EventStatusIn):
    updated = collection("event").find_one_and_update(
        {"_id": to_object_id(event_id)},
        {"$set": {"status": payload.status, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Event not found")
    logger.info("Event %s marked %s", event_id, payload.status)
    return serialize(updated)
