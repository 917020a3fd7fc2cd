"""
Expert availability and consulting session booking.

Availability is stored per expert and calendar day (midnight UTC). Booking
pulls the requested slot out of that day's document in a single conditional
update, so two bookings can never both obtain the same slot.
"""
import logging
from datetime import date
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from actions.users import require_user
from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, start_of_day, to_object_id, transaction, utcnow,
)
from listing import SessionFilters
from schemas import AvailabilityIn, BookingIn, ConsultingSession, ExpertAvailability, SessionUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consulting", tags=["consulting"])


@router.put("/availability")
def set_availability(payload: AvailabilityIn):
    require_user(payload.expert_id)
    day = start_of_day(payload.date)
    booked = set(collection("consultingsession").distinct(
        "time_slot", {"expert": payload.expert_id, "date": day, "status": "scheduled"}
    ))
    entry = ExpertAvailability(
        expert=payload.expert_id, date=day, rate=payload.rate,
        time_slots=[slot for slot in payload.time_slots if slot not in booked],
    )
    now = utcnow()
    availability = collection("expertavailability").find_one_and_update(
        {"expert": payload.expert_id, "date": day},
        {
            "$set": {**entry.model_dump(), "updated_at": now},
            "$setOnInsert": {"created_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Availability for expert %s on %s set to %d slots",
                payload.expert_id, day.date(), len(entry.time_slots))
    return serialize(availability)


@router.get("/availability")
def get_availability(expert_id: str, start_date: Optional[date] = None, end_date: Optional[date] = None):
    query = {"expert": expert_id}
    date_range = {}
    if start_date:
        date_range["$gte"] = start_of_day(start_date)
    if end_date:
        date_range["$lte"] = start_of_day(end_date)
    if date_range:
        query["date"] = date_range
    availability = collection("expertavailability").find(query).sort([("date", 1), ("_id", 1)])
    return {"availability": serialize(list(availability))}


@router.post("/sessions")
def book_session(payload: BookingIn):
    require_user(payload.client_id)
    day = start_of_day(payload.date)

    with transaction() as session:
        availability = collection("expertavailability").find_one_and_update(
            {"expert": payload.expert_id, "date": day, "time_slots": payload.time_slot},
            {"$pull": {"time_slots": payload.time_slot}},
            session=session,
        )
        if availability is None:
            offered = collection("expertavailability").find_one(
                {"expert": payload.expert_id, "date": day}, {"_id": 1}, session=session
            )
            if offered is None:
                raise HTTPException(status_code=404, detail="Expert is not available at the requested time")
            raise HTTPException(status_code=409, detail="Time slot is already booked")

        booking = ConsultingSession(
            expert=payload.expert_id, client=payload.client_id, date=day,
            time_slot=payload.time_slot, duration=payload.duration,
            rate=availability["rate"], topic=payload.topic, notes=payload.notes or "",
        )
        session_id = create_document("consultingsession", booking, session=session)

    logger.info("Session %s booked with expert %s at %s %s",
                session_id, payload.expert_id, day.date(), payload.time_slot)
    return serialize(collection("consultingsession").find_one({"_id": ObjectId(session_id)}))


@router.get("/sessions")
def get_sessions(
    user_id: str,
    role: str = "client",
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    filters = SessionFilters(user_id=user_id, role=role, status=status, page=page, page_size=page_size)
    sessions, is_next = filters.run(collection("consultingsession"))
    sessions = populate(sessions, "expert", "user", USER_PUBLIC_FIELDS)
    sessions = populate(sessions, "client", "user", USER_PUBLIC_FIELDS)
    return {"sessions": serialize(sessions), "is_next": is_next}


@router.patch("/sessions/{session_id}")
def update_session(session_id: str, payload: SessionUpdate):
    booking = get_or_404("consultingsession", session_id, "Session not found")
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    data["updated_at"] = utcnow()

    if data.get("status") == "scheduled" and booking.get("status") == "cancelled":
        # the slot was released on cancel and must be taken again
        reclaimed = collection("expertavailability").find_one_and_update(
            {"expert": booking["expert"], "date": booking["date"], "time_slots": booking["time_slot"]},
            {"$pull": {"time_slots": booking["time_slot"]}},
        )
        if reclaimed is None:
            raise HTTPException(status_code=409, detail="Time slot is already booked")

    updated = collection("consultingsession").find_one_and_update(
        {"_id": to_object_id(session_id)}, {"$set": data}, return_document=ReturnDocument.AFTER
    )

    if data.get("status") == "cancelled" and booking.get("status") == "scheduled":
        # hand the slot back
        collection("expertavailability").update_one(
            {"expert": booking["expert"], "date": booking["date"]},
            {"$addToSet": {"time_slots": booking["time_slot"]}},
        )
        logger.info("Session %s cancelled; slot %s released", session_id, booking["time_slot"])
    return serialize(updated)
