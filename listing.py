"""
List query construction shared by every paginated listing.

Each entity gets its own filter model with explicit optional fields. A filter
model turns itself into a Mongo query (``to_query``) and a sort specification
(``sort_spec``); ``paginate`` runs the pair against a collection and reports
whether a further page exists.
"""
import re
from datetime import datetime
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

from database import utc_naive

SortSpec = List[Tuple[str, int]]


def text_search(search_query: Optional[str], fields: Sequence[str]) -> Dict[str, Any]:
    """Case-insensitive substring match of ``search_query`` across ``fields``."""
    if not search_query:
        return {}
    pattern = re.escape(search_query.strip())
    return {"$or": [{f: {"$regex": pattern, "$options": "i"}} for f in fields]}


def paginate(
    col,
    query: Dict[str, Any],
    sort: SortSpec,
    page: int = 1,
    page_size: int = 10,
    computed: Optional[Dict[str, Any]] = None,
) -> Tuple[List[dict], bool]:
    """Return one page of ``col`` matching ``query`` and whether more pages follow.

    ``computed`` maps derived sort keys to aggregation expressions, e.g.
    ``{"like_count": {"$size": "$likes"}}``; when given, the page is read
    through an aggregation pipeline instead of a plain find.
    """
    skip = (page - 1) * page_size
    sort = list(sort)
    if not any(key == "_id" for key, _ in sort):
        sort.append(("_id", -1))

    if computed:
        pipeline = [
            {"$match": query},
            {"$addFields": computed},
            {"$sort": dict(sort)},
            {"$skip": skip},
            {"$limit": page_size},
            {"$project": {k: 0 for k in computed}},
        ]
        items = list(col.aggregate(pipeline))
    else:
        items = list(col.find(query).sort(sort).skip(skip).limit(page_size))

    total = col.count_documents(query)
    return items, total > page * page_size


def size_of(field: str) -> Dict[str, Any]:
    return {"$size": {"$ifNull": [f"${field}", []]}}


def combine(*parts: Dict[str, Any]) -> Dict[str, Any]:
    """AND together query fragments, keeping multiple ``$or`` clauses apart."""
    parts = [p for p in parts if p]
    if not parts:
        return {}
    if len(parts) == 1:
        return dict(parts[0])
    merged: Dict[str, Any] = {}
    ors = []
    for p in parts:
        for key, value in p.items():
            if key == "$or":
                ors.append({"$or": value})
            else:
                merged[key] = value
    if len(ors) == 1:
        merged.update(ors[0])
    elif ors:
        merged["$and"] = ors
    return merged


class ListFilters(BaseModel):
    search_query: Optional[str] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(10, ge=1, le=100)

    search_fields: ClassVar[Sequence[str]] = ()

    def to_query(self) -> Dict[str, Any]:
        return text_search(self.search_query, self.search_fields)

    def sort_spec(self) -> SortSpec:
        return [("created_at", -1)]

    def computed(self) -> Optional[Dict[str, Any]]:
        return None

    def run(self, col) -> Tuple[List[dict], bool]:
        return paginate(col, self.to_query(), self.sort_spec(), self.page, self.page_size, self.computed())


class QuestionFilters(ListFilters):
    filter: Optional[str] = Field(None, description="newest | frequent | unanswered")
    page_size: int = Field(20, ge=1, le=100)
    search_fields: ClassVar[Sequence[str]] = ("title", "content")

    def to_query(self):
        query = super().to_query()
        if self.filter == "unanswered":
            query = combine(query, {"answers": {"$size": 0}})
        return query

    def sort_spec(self):
        if self.filter == "frequent":
            return [("views", -1)]
        return [("created_at", -1)]


class UserFilters(ListFilters):
    filter: Optional[str] = Field(None, description="new_users | old_users | top_contributors")
    page_size: int = Field(20, ge=1, le=100)
    search_fields: ClassVar[Sequence[str]] = ("name", "username")

    def sort_spec(self):
        if self.filter == "old_users":
            return [("joined_at", 1), ("_id", 1)]
        if self.filter == "top_contributors":
            return [("reputation", -1)]
        return [("joined_at", -1)]


class TagFilters(ListFilters):
    filter: Optional[str] = Field(None, description="popular | recent | name | old")
    page_size: int = Field(20, ge=1, le=100)
    search_fields: ClassVar[Sequence[str]] = ("name",)

    def sort_spec(self):
        if self.filter == "recent":
            return [("created_at", -1)]
        if self.filter == "name":
            return [("name", 1)]
        if self.filter == "old":
            return [("created_at", 1), ("_id", 1)]
        return [("question_count", -1)]

    def computed(self):
        if self.filter in (None, "popular"):
            return {"question_count": size_of("questions")}
        return None


class JobFilters(ListFilters):
    country: Optional[str] = None
    employment_type: Optional[str] = None
    search_fields: ClassVar[Sequence[str]] = ("title", "employer_name", "description")

    def to_query(self):
        exact = {}
        if self.country:
            exact["country"] = self.country
        if self.employment_type:
            exact["employment_type"] = self.employment_type
        return combine(exact, super().to_query())


class EventFilters(ListFilters):
    status: Optional[str] = "approved"
    country: Optional[str] = None
    event_type: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page_size: int = Field(12, ge=1, le=100)
    search_fields: ClassVar[Sequence[str]] = ("title", "description", "location")

    def to_query(self):
        exact: Dict[str, Any] = {}
        if self.status:
            exact["status"] = self.status
        if self.country:
            exact["country"] = self.country
        if self.event_type:
            exact["event_type"] = self.event_type
        if self.technologies:
            exact["technologies"] = {"$in": self.technologies}
        if self.start_date:
            exact["start_date"] = {"$gte": utc_naive(self.start_date)}
        if self.end_date:
            exact["end_date"] = {"$lte": utc_naive(self.end_date)}
        return combine(exact, super().to_query())

    def sort_spec(self):
        return [("start_date", 1), ("_id", 1)]


class ArticleFilters(ListFilters):
    category: Optional[str] = None
    author_id: Optional[str] = None
    sort_by: Optional[str] = Field("newest", description="newest | oldest | popular | likes")
    search_fields: ClassVar[Sequence[str]] = ("title", "content")

    def to_query(self):
        exact: Dict[str, Any] = {"published": True}
        if self.category:
            exact["category"] = self.category
        if self.author_id:
            exact["author"] = self.author_id
        return combine(exact, super().to_query())

    def sort_spec(self):
        if self.sort_by == "oldest":
            return [("created_at", 1), ("_id", 1)]
        if self.sort_by == "popular":
            return [("views", -1)]
        if self.sort_by == "likes":
            return [("like_count", -1)]
        return [("created_at", -1)]

    def computed(self):
        if self.sort_by == "likes":
            return {"like_count": size_of("likes")}
        return None


class ChallengeFilters(ListFilters):
    difficulty: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    author_id: Optional[str] = None
    sort_by: Optional[str] = Field("newest", description="newest | oldest | popular")
    search_fields: ClassVar[Sequence[str]] = ("title", "description")

    def to_query(self):
        exact: Dict[str, Any] = {"published": True}
        if self.difficulty:
            exact["difficulty"] = self.difficulty
        if self.tags:
            exact["tags"] = {"$in": self.tags}
        if self.author_id:
            exact["author"] = self.author_id
        return combine(exact, super().to_query())

    def sort_spec(self):
        if self.sort_by == "oldest":
            return [("created_at", 1), ("_id", 1)]
        if self.sort_by == "popular":
            return [("submission_count", -1)]
        return [("created_at", -1)]

    def computed(self):
        if self.sort_by == "popular":
            return {"submission_count": size_of("submissions")}
        return None


class ExpertFilters(ListFilters):
    expertise: List[str] = Field(default_factory=list)
    sort_by: Optional[str] = Field("rating", description="rating | review_count | consulting_rate")
    # Filled by the caller from a user name/username search
    user_ids: Optional[List[str]] = None

    def to_query(self):
        query: Dict[str, Any] = {"is_verified": True}
        if self.expertise:
            query["expertise"] = {"$in": self.expertise}
        if self.user_ids is not None:
            query["user"] = {"$in": self.user_ids}
        return query

    def sort_spec(self):
        if self.sort_by == "review_count":
            return [("review_count", -1)]
        if self.sort_by == "consulting_rate":
            return [("consulting_rate", 1)]
        return [("rating", -1)]


class SessionFilters(ListFilters):
    user_id: str
    role: str = Field("client", description="expert | client")
    status: Optional[str] = None

    def to_query(self):
        query: Dict[str, Any] = {"expert" if self.role == "expert" else "client": self.user_id}
        if self.status:
            query["status"] = self.status
        return query

    def sort_spec(self):
        return [("date", 1), ("_id", 1)]


class ProjectFilters(ListFilters):
    user_id: str
    filter: Optional[str] = Field(None, description="starred | forked")
    sort_by: Optional[str] = Field(
        "newest", description="newest | oldest | most-stars | most-forks | recently-updated | most-complete"
    )
    page_size: int = Field(6, ge=1, le=100)
    search_fields: ClassVar[Sequence[str]] = ("name", "description", "technologies")

    def member_query(self) -> Dict[str, Any]:
        return {"$or": [{"owner": self.user_id}, {"contributors": self.user_id}]}

    def to_query(self):
        scope = {}
        if self.filter == "starred":
            scope["stars"] = self.user_id
        elif self.filter == "forked":
            scope["parent_project"] = {"$ne": None}
        return combine(self.member_query(), super().to_query(), scope)

    def sort_spec(self):
        if self.sort_by == "oldest":
            return [("created_at", 1), ("_id", 1)]
        if self.sort_by == "most-stars":
            return [("star_count", -1)]
        if self.sort_by == "most-forks":
            return [("fork_count", -1)]
        if self.sort_by == "recently-updated":
            return [("updated_at", -1)]
        if self.sort_by == "most-complete":
            return [("completion_percentage", -1)]
        return [("created_at", -1)]

    def computed(self):
        if self.sort_by == "most-stars":
            return {"star_count": size_of("stars")}
        if self.sort_by == "most-forks":
            return {"fork_count": size_of("forks")}
        return None
