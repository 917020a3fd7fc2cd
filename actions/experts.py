import logging
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from actions.users import require_user
from database import USER_PUBLIC_FIELDS, collection, create_document, populate, serialize, utcnow
from listing import ExpertFilters, text_search
from schemas import ExpertProfile, ExpertProfileIn, ExpertProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/experts", tags=["experts"])


def find_profile(user_id: str) -> dict:
    profile = collection("expertprofile").find_one({"user": user_id})
    if not profile:
        raise HTTPException(status_code=404, detail="Expert profile not found")
    return profile


@router.post("")
def become_expert(payload: ExpertProfileIn):
    user = require_user(payload.user_id)
    if collection("expertprofile").find_one({"user": payload.user_id}, {"_id": 1}):
        raise HTTPException(status_code=409, detail="Expert profile already exists")

    profile = ExpertProfile(
        user=payload.user_id, expertise=payload.expertise, bio=payload.bio,
        consulting_rate=payload.consulting_rate, is_verified=False,
    )
    profile_id = create_document("expertprofile", profile)
    collection("user").update_one({"_id": user["_id"]}, {"$addToSet": {"role": "expert"}})
    logger.info("Expert profile %s created for user %s", profile_id, payload.user_id)
    return {
        "success": True,
        "message": "Expert profile created successfully. Awaiting verification.",
        "profile": serialize(collection("expertprofile").find_one({"_id": ObjectId(profile_id)})),
    }


@router.get("")
def list_experts(
    q: Optional[str] = None,
    expertise: Optional[List[str]] = Query(None),
    sort_by: str = "rating",
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    user_ids = None
    if q:
        # match on the expert's user, before paginating the profiles
        matches = collection("user").find(text_search(q, ("name", "username")), {"_id": 1})
        user_ids = [str(u["_id"]) for u in matches]

    filters = ExpertFilters(
        expertise=expertise or [], sort_by=sort_by, user_ids=user_ids, page=page, page_size=page_size,
    )
    experts, is_next = filters.run(collection("expertprofile"))
    experts = populate(experts, "user", "user", USER_PUBLIC_FIELDS)
    return {"experts": serialize(experts), "is_next": is_next}


@router.get("/status")
def check_expert_status(user_id: str):
    require_user(user_id)
    profile = collection("expertprofile").find_one({"user": user_id})
    if not profile:
        return {"is_expert": False, "is_verified": False}
    return {
        "is_expert": True,
        "is_verified": profile.get("is_verified", False),
        "expertise": profile.get("expertise", []),
        "consulting_rate": profile.get("consulting_rate", 0),
        "rating": profile.get("rating", 0),
        "review_count": profile.get("review_count", 0),
    }


@router.get("/{user_id}")
def get_expert_profile(user_id: str):
    profile = find_profile(user_id)
    return serialize(populate([profile], "user", "user", USER_PUBLIC_FIELDS)[0])


@router.patch("/{user_id}")
def update_expert_profile(user_id: str, payload: ExpertProfileUpdate):
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    data["updated_at"] = utcnow()
    updated = collection("expertprofile").find_one_and_update(
        {"user": user_id}, {"$set": data}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Expert profile not found")
    return serialize(updated)


@router.post("/{user_id}/verify")
def verify_expert(user_id: str):
    updated = collection("expertprofile").find_one_and_update(
        {"user": user_id},
        {"$set": {"is_verified": True, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Expert profile not found")
    logger.info("Expert %s verified", user_id)
    return serialize(updated)
