import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, HTTPException, Query
from pymongo import ReturnDocument

from actions.users import adjust_reputation, require_user
from database import (
    USER_PUBLIC_FIELDS, collection, create_document, get_or_404, populate,
    serialize, to_object_id, unique_slug, utcnow,
)
from listing import ArticleFilters
from schemas import ArticleIn, ArticleUpdate, KnowledgeBaseArticle, VoteIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/knowledge-base", tags=["knowledge-base"])

ARTICLE_REPUTATION = 10
RELATED_LIMIT = 3


@router.post("")
def create_article(payload: ArticleIn):
    require_user(payload.author)
    article = KnowledgeBaseArticle(
        **payload.model_dump(), slug=unique_slug("knowledgebasearticle", payload.title)
    )
    new_id = create_document("knowledgebasearticle", article)
    adjust_reputation(payload.author, ARTICLE_REPUTATION)
    logger.info("Knowledge base article %s created as %s", new_id, article.slug)
    created = collection("knowledgebasearticle").find_one({"_id": ObjectId(new_id)})
    return serialize(created)


@router.patch("/{article_id}")
def update_article(article_id: str, payload: ArticleUpdate):
    oid = to_object_id(article_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if data.get("title"):
        data["slug"] = unique_slug("knowledgebasearticle", data["title"], exclude_id=oid)
    data["updated_at"] = utcnow()
    updated = collection("knowledgebasearticle").find_one_and_update(
        {"_id": oid}, {"$set": data}, return_document=ReturnDocument.AFTER
    )
    if not updated:
        raise HTTPException(status_code=404, detail="Article not found")
    return serialize(updated)


@router.get("")
def list_articles(
    q: Optional[str] = None,
    category: Optional[str] = None,
    author_id: Optional[str] = None,
    sort_by: str = "newest",
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    filters = ArticleFilters(
        search_query=q, category=category, author_id=author_id,
        sort_by=sort_by, page=page, page_size=page_size,
    )
    articles, is_next = filters.run(collection("knowledgebasearticle"))
    articles = populate(articles, "author", "user", USER_PUBLIC_FIELDS)
    return {"articles": serialize(articles), "is_next": is_next}


@router.get("/categories")
def list_categories():
    categories = collection("knowledgebasearticle").distinct("category", {"published": True})
    return {"categories": sorted(c for c in categories if c)}


@router.get("/{slug}")
def get_article(slug: str):
    # Every read counts as a view; repeated reads keep counting
    article = collection("knowledgebasearticle").find_one_and_update(
        {"slug": slug, "published": True},
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    return serialize(populate([article], "author", "user", USER_PUBLIC_FIELDS)[0])


@router.get("/{slug}/related")
def get_related_articles(slug: str):
    article = collection("knowledgebasearticle").find_one({"slug": slug, "published": True}, {"category": 1})
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    related = collection("knowledgebasearticle").find(
        {"category": article["category"], "published": True, "_id": {"$ne": article["_id"]}},
        {"title": 1, "slug": 1, "category": 1, "views": 1, "created_at": 1},
    ).sort([("views", -1), ("_id", -1)]).limit(RELATED_LIMIT)
    return {"articles": serialize(list(related))}


@router.post("/{article_id}/like")
def like_article(article_id: str, payload: VoteIn):
    article = get_or_404("knowledgebasearticle", article_id, "Article not found", {"likes": 1})
    liked = payload.user_id not in article.get("likes", [])
    update = {"$addToSet": {"likes": payload.user_id}} if liked else {"$pull": {"likes": payload.user_id}}
    updated = collection("knowledgebasearticle").find_one_and_update(
        {"_id": article["_id"]}, update, {"likes": 1}, return_document=ReturnDocument.AFTER
    )
    return {"success": True, "liked": liked, "likes": len(updated.get("likes", []))}


@router.delete("/{article_id}")
def delete_article(article_id: str):
    result = collection("knowledgebasearticle").delete_one({"_id": to_object_id(article_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Article not found")
    logger.info("Knowledge base article %s deleted", article_id)
    return {"success": True}
