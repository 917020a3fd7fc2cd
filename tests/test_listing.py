from datetime import datetime

import database
from listing import (
    ArticleFilters, EventFilters, ExpertFilters, ProjectFilters, QuestionFilters,
    SessionFilters, TagFilters, combine, paginate, text_search,
)
from schemas import Question


def seed_questions(count, author="u1", **fields):
    ids = []
    for i in range(count):
        question = Question(title=f"Question number {i}", content="body", author=author)
        data = question.model_dump()
        data.update(fields)
        ids.append(database.create_document("question", data))
    return ids


def test_text_search_escapes_and_ignores_case():
    query = text_search("c++ (basics)", ("title",))
    assert query == {"$or": [{"title": {"$regex": r"c\+\+\ \(basics\)", "$options": "i"}}]}
    assert text_search("", ("title",)) == {}
    assert text_search(None, ("title",)) == {}


def test_combine_keeps_separate_or_clauses():
    a = {"$or": [{"x": 1}]}
    b = {"$or": [{"y": 2}]}
    merged = combine({"published": True}, a, b)
    assert merged["published"] is True
    assert merged["$and"] == [a, b]
    assert combine({}, {}) == {}


def test_pagination_last_partial_page(db):
    seed_questions(25)
    items, is_next = paginate(db["question"], {}, [("created_at", -1)], page=3, page_size=10)
    assert len(items) == 5
    assert is_next is False

    items, is_next = paginate(db["question"], {}, [("created_at", -1)], page=2, page_size=10)
    assert len(items) == 10
    assert is_next is True


def test_pagination_is_stable_across_pages(db):
    seed_questions(12)
    first, _ = paginate(db["question"], {}, [("views", -1)], page=1, page_size=5)
    second, _ = paginate(db["question"], {}, [("views", -1)], page=2, page_size=5)
    third, _ = paginate(db["question"], {}, [("views", -1)], page=3, page_size=5)
    seen = [q["_id"] for q in first + second + third]
    assert len(seen) == len(set(seen)) == 12


def test_question_search_is_case_insensitive(client):
    seed_questions(3)
    database.create_document("question", Question(title="How do React hooks work", content="...", author="u1"))

    for q in ("react", "REACT", "React Hooks"):
        body = client.get("/api/questions", params={"q": q}).json()
        assert [item["title"] for item in body["questions"]] == ["How do React hooks work"]


def test_question_list_endpoint_pages(client):
    seed_questions(25)
    body = client.get("/api/questions", params={"page": 3, "page_size": 10}).json()
    assert len(body["questions"]) == 5
    assert body["is_next"] is False


def test_invalid_page_is_rejected(client):
    assert client.get("/api/questions", params={"page": 0}).status_code == 422
    assert client.get("/api/questions", params={"page": -2}).status_code == 422


def test_unanswered_filter(client):
    seed_questions(2)
    seed_questions(1, answers=["a1"])
    body = client.get("/api/questions", params={"filter": "unanswered"}).json()
    assert len(body["questions"]) == 2
    assert all(q["answers"] == [] for q in body["questions"])


def test_frequent_filter_sorts_by_views(client):
    seed_questions(1, views=3)
    seed_questions(1, views=30)
    seed_questions(1, views=10)
    body = client.get("/api/questions", params={"filter": "frequent"}).json()
    assert [q["views"] for q in body["questions"]] == [30, 10, 3]


def test_question_filter_sort_defaults_to_newest():
    assert QuestionFilters().sort_spec() == [("created_at", -1)]
    assert QuestionFilters(filter="frequent").sort_spec() == [("views", -1)]
    assert QuestionFilters().page_size == 20


def test_tag_filter_popular_sorts_by_question_count():
    filters = TagFilters()
    assert filters.sort_spec() == [("question_count", -1)]
    assert "question_count" in filters.computed()
    assert TagFilters(filter="name").computed() is None


def test_article_filter_query():
    query = ArticleFilters(category="tutorials", search_query="react").to_query()
    assert query["published"] is True
    assert query["category"] == "tutorials"
    assert len(query["$or"]) == 2


def test_event_filter_defaults_to_approved_upcoming_order():
    filters = EventFilters(technologies=["python"], start_date=datetime(2026, 1, 1))
    query = filters.to_query()
    assert query["status"] == "approved"
    assert query["technologies"] == {"$in": ["python"]}
    assert query["start_date"] == {"$gte": datetime(2026, 1, 1)}
    assert filters.sort_spec()[0] == ("start_date", 1)
    assert filters.page_size == 12


def test_expert_filter_limits_to_resolved_users():
    query = ExpertFilters(user_ids=[]).to_query()
    assert query == {"is_verified": True, "user": {"$in": []}}
    assert ExpertFilters(sort_by="consulting_rate").sort_spec() == [("consulting_rate", 1)]


def test_session_filter_role():
    assert SessionFilters(user_id="e1", role="expert").to_query() == {"expert": "e1"}
    assert SessionFilters(user_id="c1", status="scheduled").to_query() == {"client": "c1", "status": "scheduled"}


def test_project_filters_scope_to_member_and_combine_search():
    members = [{"owner": "u1"}, {"contributors": "u1"}]
    assert ProjectFilters(user_id="u1").to_query() == {"$or": members}

    query = ProjectFilters(user_id="u1", search_query="py", filter="starred").to_query()
    assert query == {
        "stars": "u1",
        "$and": [
            {"$or": members},
            {"$or": [{f: {"$regex": "py", "$options": "i"}} for f in ("name", "description", "technologies")]},
        ],
    }
    assert ProjectFilters(user_id="u1", filter="forked").to_query()["parent_project"] == {"$ne": None}


def test_project_filters_sorts():
    assert ProjectFilters(user_id="u1").sort_spec() == [("created_at", -1)]
    most_stars = ProjectFilters(user_id="u1", sort_by="most-stars")
    assert most_stars.sort_spec() == [("star_count", -1)]
    assert most_stars.computed() == {"star_count": {"$size": {"$ifNull": ["$stars", []]}}}
    assert ProjectFilters(user_id="u1", sort_by="most-forks").computed() == {
        "fork_count": {"$size": {"$ifNull": ["$forks", []]}}
    }
    assert ProjectFilters(user_id="u1", sort_by="most-complete").computed() is None
