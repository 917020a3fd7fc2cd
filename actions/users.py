import logging
import re
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, to_object_id, utcnow,
)
from listing import QuestionFilters, UserFilters, combine, paginate
from schemas import SaveQuestionIn, User, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


# ----- Helpers shared with other actions -----

def adjust_reputation(user_id: Optional[str], amount: int, session=None):
    if not user_id or not amount or not ObjectId.is_valid(str(user_id)):
        return
    collection("user").update_one({"_id": ObjectId(str(user_id))}, {"$inc": {"reputation": amount}}, session=session)


def require_user(user_id: str) -> dict:
    return get_or_404("user", user_id, "User not found")


def find_by_clerk_id(clerk_id: str) -> dict:
    user = collection("user").find_one({"clerk_id": clerk_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def generate_unique_username(first_name: str, last_name: str, exclude_clerk_id: Optional[str] = None) -> str:
    base = re.sub(r"[^a-z0-9]", "", f"{first_name or ''}{last_name or ''}".lower()) or "user"
    username = base
    suffix = 2
    while True:
        query = {"username": username}
        if exclude_clerk_id:
            query["clerk_id"] = {"$ne": exclude_clerk_id}
        if not collection("user").find_one(query, {"_id": 1}):
            return username
        username = f"{base}{suffix}"
        suffix += 1


def create_user(clerk_id: str, name: str, username: str, email: Optional[str], picture: Optional[str]) -> dict:
    user = User(clerk_id=clerk_id, name=name, username=username, email=email, picture=picture)
    new_id = create_document("user", user)
    logger.info("Created user %s for identity %s", new_id, clerk_id)
    return collection("user").find_one({"_id": ObjectId(new_id)})


def update_user(clerk_id: str, update_data: dict) -> dict:
    update_data = {k: v for k, v in update_data.items() if v is not None}
    update_data["updated_at"] = utcnow()
    user = collection("user").find_one_and_update(
        {"clerk_id": clerk_id}, {"$set": update_data}, return_document=ReturnDocument.AFTER
    )
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def delete_user(clerk_id: str) -> dict:
    """Delete the user together with their questions and answers."""
    user = collection("user").find_one_and_delete({"clerk_id": clerk_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user_id = str(user["_id"])
    question_ids = [str(q["_id"]) for q in collection("question").find({"author": user_id}, {"_id": 1})]
    collection("question").delete_many({"author": user_id})
    collection("answer").delete_many({"$or": [{"author": user_id}, {"question": {"$in": question_ids}}]})
    collection("tag").update_many({}, {"$pull": {"questions": {"$in": question_ids}}})
    collection("interaction").delete_many({"user": user_id})
    logger.info("Deleted user %s and %d questions", user_id, len(question_ids))
    return user


# ----- Routes -----

@router.get("")
def list_users(
    q: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    filters = UserFilters(search_query=q, filter=filter, page=page, page_size=page_size)
    users, is_next = filters.run(collection("user"))
    return {"users": serialize(users), "is_next": is_next}


@router.get("/mongo-id")
def get_mongo_id(clerk_id: str):
    user = find_by_clerk_id(clerk_id)
    return {"mongo_id": str(user["_id"])}


@router.get("/{clerk_id}")
def get_user_info(clerk_id: str):
    user = find_by_clerk_id(clerk_id)
    user_id = str(user["_id"])
    return {
        "user": serialize(user),
        "total_questions": collection("question").count_documents({"author": user_id}),
        "total_answers": collection("answer").count_documents({"author": user_id}),
        "reputation": user.get("reputation", 0),
    }


@router.patch("/{clerk_id}")
def update_profile(clerk_id: str, payload: UserUpdate):
    data = payload.model_dump(exclude_unset=True)
    if data.get("username"):
        taken = collection("user").find_one({"username": data["username"], "clerk_id": {"$ne": clerk_id}})
        if taken:
            raise HTTPException(status_code=409, detail="Username already taken")
    return serialize(update_user(clerk_id, data))


@router.post("/{user_id}/saved")
def toggle_save_question(user_id: str, payload: SaveQuestionIn):
    user = require_user(user_id)
    get_or_404("question", payload.question_id, "Question not found", {"_id": 1})
    if payload.question_id in user.get("saved", []):
        update = {"$pull": {"saved": payload.question_id}}
        saved = False
    else:
        update = {"$addToSet": {"saved": payload.question_id}}
        saved = True
    collection("user").update_one({"_id": user["_id"]}, update)
    return {"saved": saved}


@router.get("/{clerk_id}/saved")
def get_saved_questions(
    clerk_id: str,
    q: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    user = find_by_clerk_id(clerk_id)
    saved_ids = [ObjectId(i) for i in user.get("saved", []) if ObjectId.is_valid(i)]
    filters = QuestionFilters(search_query=q, filter=filter, page=page, page_size=page_size)
    query = combine({"_id": {"$in": saved_ids}}, filters.to_query())
    questions, is_next = paginate(collection("question"), query, filters.sort_spec(), page, page_size)
    questions = populate(questions, "tags", "tag", {"name": 1})
    questions = populate(questions, "author", "user", USER_PUBLIC_FIELDS)
    return {"questions": serialize(questions), "is_next": is_next}


@router.get("/{user_id}/questions")
def get_user_questions(user_id: str, page: int = Query(1, ge=1), page_size: int = Query(10, ge=1, le=100)):
    to_object_id(user_id)
    questions, is_next = paginate(
        collection("question"), {"author": user_id}, [("views", -1)], page, page_size
    )
    questions = populate(questions, "tags", "tag", {"name": 1})
    return {"questions": serialize(questions), "is_next": is_next}


@router.get("/{user_id}/answers")
def get_user_answers(user_id: str, page: int = Query(1, ge=1), page_size: int = Query(10, ge=1, le=100)):
    to_object_id(user_id)
    answers, is_next = paginate(
        collection("answer"), {"author": user_id}, [("created_at", -1)], page, page_size
    )
    answers = populate(answers, "question", "question", {"title": 1})
    return {"answers": serialize(answers), "is_next": is_next}
