import logging
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

import grader
from actions.users import adjust_reputation, require_user
from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, to_object_id, transaction, unique_slug, utcnow,
)
from listing import ChallengeFilters
from schemas import ChallengeIn, ChallengeUpdate, CodeChallenge, CodeIn, CodeSubmission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/code-challenges", tags=["code-challenges"])

CHALLENGE_REPUTATION = 15
SOLVE_REPUTATION = 5


@router.post("")
def create_challenge(payload: ChallengeIn):
    require_user(payload.author)
    challenge = CodeChallenge(**payload.model_dump(), slug=unique_slug("codechallenge", payload.title))
    new_id = create_document("codechallenge", challenge)
    adjust_reputation(payload.author, CHALLENGE_REPUTATION)
    logger.info("Code challenge %s created as %s", new_id, challenge.slug)
    return serialize(collection("codechallenge").find_one({"_id": ObjectId(new_id)}))


@router.patch("/{challenge_id}")
def update_challenge(challenge_id: str, payload: ChallengeUpdate):
    oid = to_object_id(challenge_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if data.get("title"):
        data["slug"] = unique_slug("codechallenge", data["title"], exclude_id=oid)
    data["updated_at"] = utcnow()
    updated = collection("codechallenge").find_one_and_update(
        {"_id": oid}, {"$set": data}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return serialize(updated)


@router.delete("/{challenge_id}")
def delete_challenge(challenge_id: str):
    result = collection("codechallenge").delete_one({"_id": to_object_id(challenge_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Challenge not found")
    collection("codesubmission").delete_many({"challenge": challenge_id})
    logger.info("Code challenge %s deleted", challenge_id)
    return {"success": True}


@router.get("")
def list_challenges(
    q: Optional[str] = None,
    difficulty: Optional[str] = None,
    tags: Optional[List[str]] = Query(None),
    author_id: Optional[str] = None,
    sort_by: str = "newest",
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    filters = ChallengeFilters(
        search_query=q, difficulty=difficulty, tags=tags or [], author_id=author_id,
        sort_by=sort_by, page=page, page_size=page_size,
    )
    challenges, is_next = filters.run(collection("codechallenge"))
    challenges = populate(challenges, "author", "user", USER_PUBLIC_FIELDS)
    return {"challenges": serialize(challenges), "is_next": is_next}


@router.get("/{slug}")
def get_challenge(slug: str):
    challenge = collection("codechallenge").find_one({"slug": slug, "published": True})
    if not challenge:
        raise HTTPException(status_code=404, detail="Challenge not found")
    return serialize(populate([challenge], "author", "user", USER_PUBLIC_FIELDS)[0])


@router.post("/{challenge_id}/run")
def run_challenge(challenge_id: str, payload: CodeIn):
    challenge = get_or_404("codechallenge", challenge_id, "Challenge not found", {"test_cases": 1})
    results = grader.run_test_cases(payload.code, challenge.get("test_cases", []))
    passed_count = sum(r["passed"] for r in results)
    return {"results": results, "passed": passed_count, "total": len(results)}


@router.post("/{challenge_id}/submit")
def submit_challenge(challenge_id: str, payload: CodeIn):
    if not payload.user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    challenge = get_or_404("codechallenge", challenge_id, "Challenge not found", {"test_cases": 1})
    require_user(payload.user_id)

    passed, execution_time, results = grader.grade(payload.code, challenge.get("test_cases", []))
    submission = CodeSubmission(
        challenge=challenge_id, user=payload.user_id, code=payload.code,
        passed=passed, execution_time=execution_time, test_results=results,
    )
    with transaction() as session:
        submission_id = create_document("codesubmission", submission, session=session)
        collection("codechallenge").update_one(
            {"_id": challenge["_id"]}, {"$push": {"submissions": submission_id}}, session=session
        )
        if passed:
            adjust_reputation(payload.user_id, SOLVE_REPUTATION, session=session)
    logger.info("Submission %s for challenge %s passed=%s", submission_id, challenge_id, passed)

    created = collection("codesubmission").find_one({"_id": ObjectId(submission_id)})
    return {
        "submission": serialize(created),
        "passed": passed,
        "execution_time": execution_time,
        "test_results": results,
    }


@router.get("/{challenge_id}/submissions")
def get_submissions(challenge_id: str, user_id: str):
    to_object_id(challenge_id)
    submissions = collection("codesubmission").find(
        {"challenge": challenge_id, "user": user_id}
    ).sort([("created_at", -1), ("_id", -1)])
    return {"submissions": serialize(list(submissions))}
