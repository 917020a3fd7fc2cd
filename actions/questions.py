import logging
import re
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from actions.users import adjust_reputation, require_user
from actions.votes import ADDED, REMOVED, UNCHANGED, toggle_vote, vote_counts
from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, to_object_id, utcnow,
)
from listing import QuestionFilters, combine, paginate, size_of, text_search
from schemas import Interaction, Question, QuestionEdit, QuestionIn, Tag, ViewIn, VoteIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/questions", tags=["questions"])

ASK_REPUTATION = 5
VOTER_REPUTATION = 2
AUTHOR_REPUTATION = 10


def expand(questions: List[dict]) -> List[dict]:
    questions = populate(questions, "tags", "tag", {"name": 1})
    questions = populate(questions, "author", "user", USER_PUBLIC_FIELDS)
    return serialize(questions)


def attach_tags(question_id: str, names: List[str]) -> List[str]:
    """Find each tag by case-insensitive name (creating it if needed) and link the question."""
    tags = collection("tag")
    tag_ids = []
    for name in names:
        name = name.strip()
        if not name:
            continue
        existing = tags.find_one({"name": {"$regex": f"^{re.escape(name)}$", "$options": "i"}})
        if existing:
            tags.update_one({"_id": existing["_id"]}, {"$addToSet": {"questions": question_id}})
            tag_id = str(existing["_id"])
        else:
            tag_id = create_document("tag", Tag(name=name, questions=[question_id]))
        if tag_id not in tag_ids:
            tag_ids.append(tag_id)
    return tag_ids


@router.get("")
def get_questions(
    q: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    filters = QuestionFilters(search_query=q, filter=filter, page=page, page_size=page_size)
    questions, is_next = filters.run(collection("question"))
    return {"questions": expand(questions), "is_next": is_next}


@router.get("/hot")
def get_hot_questions():
    questions, _ = paginate(
        collection("question"), {}, [("views", -1), ("upvote_count", -1)],
        page=1, page_size=5, computed={"upvote_count": size_of("upvotes")},
    )
    return {"questions": serialize(questions)}


@router.get("/featured")
def get_featured_questions():
    questions, _ = paginate(
        collection("question"), {}, [("upvote_count", -1), ("views", -1)],
        page=1, page_size=5, computed={"upvote_count": size_of("upvotes")},
    )
    return {"questions": expand(questions)}


@router.get("/recommended")
def get_recommended_questions(
    user_id: str,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    require_user(user_id)
    tag_ids = set()
    for interaction in collection("interaction").find({"user": user_id}, {"tags": 1}):
        tag_ids.update(interaction.get("tags", []))

    query = combine(
        {"tags": {"$in": sorted(tag_ids)}, "author": {"$ne": user_id}},
        text_search(q, ("title", "content")),
    )
    questions, is_next = paginate(collection("question"), query, [("created_at", -1)], page, page_size)
    return {"questions": expand(questions), "is_next": is_next}


@router.post("")
def create_question(payload: QuestionIn):
    require_user(payload.author)
    question = Question(title=payload.title, content=payload.content, author=payload.author)
    question_id = create_document("question", question)

    tag_ids = attach_tags(question_id, payload.tags)
    collection("question").update_one({"_id": ObjectId(question_id)}, {"$set": {"tags": tag_ids}})

    create_document("interaction", Interaction(
        user=payload.author, action="ask_question", question=question_id, tags=tag_ids,
    ))
    adjust_reputation(payload.author, ASK_REPUTATION)
    logger.info("Question %s created by %s", question_id, payload.author)

    created = collection("question").find_one({"_id": ObjectId(question_id)})
    return expand([created])[0]


@router.get("/{question_id}")
def get_question(question_id: str):
    question = get_or_404("question", question_id, "Question not found")
    return expand([question])[0]


@router.post("/{question_id}/view")
def view_question(question_id: str, payload: ViewIn):
    question = collection("question").find_one_and_update(
        {"_id": to_object_id(question_id)}, {"$inc": {"views": 1}}, {"tags": 1, "views": 1},
        return_document=ReturnDocument.AFTER,
    )
    if not question:
        raise HTTPException(status_code=404, detail="Question not found")

    if payload.user_id:
        seen = collection("interaction").find_one(
            {"user": payload.user_id, "action": "view", "question": question_id}
        )
        if not seen:
            create_document("interaction", Interaction(
                user=payload.user_id, action="view", question=question_id, tags=question.get("tags", []),
            ))
    return {"views": question["views"]}


def _vote(question_id: str, user_id: str, field: str) -> dict:
    question, outcome = toggle_vote("question", question_id, user_id, field, "Question not found")
    if outcome == UNCHANGED:
        return {"action": outcome, **vote_counts("question", question_id)}
    if outcome == ADDED:
        voter, author = VOTER_REPUTATION, AUTHOR_REPUTATION
    elif outcome == REMOVED:
        voter, author = -VOTER_REPUTATION, -AUTHOR_REPUTATION
    else:
        # switching sides undoes the previous vote's effect on the author
        voter, author = 0, 2 * AUTHOR_REPUTATION
    if field == "downvotes":
        author = -author

    adjust_reputation(user_id, voter)
    if question.get("author") != user_id:
        adjust_reputation(question.get("author"), author)
    return {"action": outcome, **vote_counts("question", question_id)}


@router.post("/{question_id}/upvote")
def upvote_question(question_id: str, payload: VoteIn):
    return _vote(question_id, payload.user_id, "upvotes")


@router.post("/{question_id}/downvote")
def downvote_question(question_id: str, payload: VoteIn):
    return _vote(question_id, payload.user_id, "downvotes")


@router.patch("/{question_id}")
def edit_question(question_id: str, payload: QuestionEdit):
    result = collection("question").update_one(
        {"_id": to_object_id(question_id)},
        {"$set": {"title": payload.title, "content": payload.content, "updated_at": utcnow()}},
    )
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Question not found")
    return get_question(question_id)


@router.delete("/{question_id}")
def delete_question(question_id: str):
    result = collection("question").delete_one({"_id": to_object_id(question_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Question not found")
    collection("answer").delete_many({"question": question_id})
    collection("interaction").delete_many({"question": question_id})
    collection("tag").update_many({"questions": question_id}, {"$pull": {"questions": question_id}})
    collection("user").update_many({"saved": question_id}, {"$pull": {"saved": question_id}})
    logger.info("Question %s deleted", question_id)
    return {"success": True}
