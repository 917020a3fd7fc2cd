import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException

from actions.users import adjust_reputation, require_user
from actions.votes import toggle_vote, vote_counts
from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, to_object_id,
)
from listing import size_of
from schemas import Answer, AnswerIn, Interaction, VoteIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/answers", tags=["answers"])

ANSWER_REPUTATION = 10

SORTS = {
    "highestUpvotes": [("upvote_count", -1)],
    "lowestUpvotes": [("upvote_count", 1)],
    "recent": [("created_at", -1)],
    "old": [("created_at", 1)],
}


@router.post("")
def create_answer(payload: AnswerIn):
    require_user(payload.author)
    question = get_or_404("question", payload.question, "Question not found", {"tags": 1})

    answer_id = create_document("answer", Answer(**payload.model_dump()))
    collection("question").update_one({"_id": question["_id"]}, {"$addToSet": {"answers": answer_id}})
    create_document("interaction", Interaction(
        user=payload.author, action="answer", question=payload.question,
        answer=answer_id, tags=question.get("tags", []),
    ))
    adjust_reputation(payload.author, ANSWER_REPUTATION)
    logger.info("Answer %s posted on question %s", answer_id, payload.question)

    created = collection("answer").find_one({"_id": ObjectId(answer_id)})
    return serialize(created)


@router.get("")
def get_answers(question_id: str, sort_by: Optional[str] = None):
    sort = SORTS.get(sort_by, [("created_at", 1)]) + [("_id", 1)]
    pipeline = [
        {"$match": {"question": question_id}},
        {"$addFields": {"upvote_count": size_of("upvotes")}},
        {"$sort": dict(sort)},
        {"$project": {"upvote_count": 0}},
    ]
    answers = list(collection("answer").aggregate(pipeline))
    answers = populate(answers, "author", "user", USER_PUBLIC_FIELDS)
    return {"answers": serialize(answers)}


@router.post("/{answer_id}/upvote")
def upvote_answer(answer_id: str, payload: VoteIn):
    _, outcome = toggle_vote("answer", answer_id, payload.user_id, "upvotes", "Answer not found")
    return {"action": outcome, **vote_counts("answer", answer_id)}


@router.post("/{answer_id}/downvote")
def downvote_answer(answer_id: str, payload: VoteIn):
    _, outcome = toggle_vote("answer", answer_id, payload.user_id, "downvotes", "Answer not found")
    return {"action": outcome, **vote_counts("answer", answer_id)}


@router.delete("/{answer_id}")
def delete_answer(answer_id: str):
    answer = collection("answer").find_one_and_delete({"_id": to_object_id(answer_id)})
    if not answer:
        raise HTTPException(status_code=404, detail="Answer not found")
    if ObjectId.is_valid(answer.get("question", "")):
        collection("question").update_one(
            {"_id": ObjectId(answer["question"])}, {"$pull": {"answers": answer_id}}
        )
    collection("interaction").delete_many({"answer": answer_id})
    return {"success": True}
