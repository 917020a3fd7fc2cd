from collections import Counter
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Query

from actions.questions import expand
from database import collection, get_or_404, serialize, to_object_id
from listing import QuestionFilters, TagFilters, combine, paginate, size_of

router = APIRouter(prefix="/api/tags", tags=["tags"])


@router.get("")
def get_all_tags(
    q: Optional[str] = None,
    filter: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    filters = TagFilters(search_query=q, filter=filter, page=page, page_size=page_size)
    tags, is_next = filters.run(collection("tag"))
    return {"tags": serialize(tags), "is_next": is_next}


@router.get("/popular")
def get_popular_tags(limit: int = Query(5, ge=1, le=50)):
    tags, _ = paginate(
        collection("tag"), {}, [("question_count", -1)], 1, limit,
        computed={"question_count": size_of("questions")},
    )
    return {"tags": [
        {"_id": str(t["_id"]), "name": t["name"], "question_count": len(t.get("questions", []))}
        for t in tags
    ]}


@router.get("/top-interacted")
def get_top_interacted_tags(user_id: str, limit: int = Query(3, ge=1, le=20)):
    to_object_id(user_id)
    counts = Counter()
    for interaction in collection("interaction").find({"user": user_id}, {"tags": 1}):
        counts.update(interaction.get("tags", []))
    top = [tag_id for tag_id, _ in counts.most_common(limit) if ObjectId.is_valid(tag_id)]
    names = {str(t["_id"]): t["name"] for t in collection("tag").find({"_id": {"$in": [ObjectId(i) for i in top]}})}
    return {"tags": [{"_id": i, "name": names[i]} for i in top if i in names]}


@router.get("/{tag_id}/questions")
def get_questions_by_tag(
    tag_id: str,
    q: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    tag = get_or_404("tag", tag_id, "Tag not found")
    filters = QuestionFilters(search_query=q, page=page, page_size=page_size)
    query = combine({"tags": tag_id}, filters.to_query())
    questions, is_next = paginate(collection("question"), query, filters.sort_spec(), page, page_size)
    return {"tag_title": tag["name"], "questions": expand(questions), "is_next": is_next}
