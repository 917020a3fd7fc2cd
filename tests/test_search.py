from pymongo.errors import ServerSelectionTimeoutError

import database
from actions import search
from schemas import Answer, Question, Tag


def seed(make_user):
    grace = make_user(name="Grace Hopper", clerk_id="clerk_grace")
    question_id = database.create_document("question", Question(title="Debugging COBOL", content="...", author=grace))
    database.create_document("answer", Answer(content="Start with the debugger output", author=grace, question=question_id))
    for name in ("debugging", "cobol", "debugger-tools"):
        database.create_document("tag", Tag(name=name))
    return question_id


def test_global_search_limits_two_per_type(client, make_user):
    question_id = seed(make_user)

    results = client.get("/api/search", params={"q": "DEBUG"}).json()["results"]
    by_type = {}
    for r in results:
        by_type.setdefault(r["type"], []).append(r)

    assert len(by_type["tag"]) == 2
    assert by_type["question"] == [{"title": "Debugging COBOL", "type": "question", "id": question_id}]
    assert by_type["answer"] == [{"title": "Answer containing DEBUG", "type": "answer", "id": question_id}]
    assert "user" not in by_type


def test_search_single_type(client, make_user):
    seed(make_user)
    results = client.get("/api/search", params={"q": "grace", "type": "user"}).json()["results"]
    assert results == [{"title": "Grace Hopper", "type": "user", "id": "clerk_grace"}]

    tags = client.get("/api/search", params={"q": "debug", "type": "TAG"}).json()["results"]
    assert len(tags) == 2


def test_unknown_type_searches_everything(client, make_user):
    seed(make_user)
    results = client.get("/api/search", params={"q": "cobol", "type": "planet"}).json()["results"]
    assert {r["type"] for r in results} == {"question", "tag"}


def test_search_treats_query_literally(client, make_user):
    seed(make_user)
    assert client.get("/api/search", params={"q": ".*"}).json()["results"] == []


def test_stats(client, make_user):
    seed(make_user)
    assert client.get("/api/stats").json() == {"questions": 1, "answers": 1, "users": 1, "tags": 3}


class _Unreachable:
    def count_documents(self, query):
        raise ServerSelectionTimeoutError("no servers")


def test_stats_fall_back_to_zero(client, monkeypatch):
    monkeypatch.setattr(search, "collection", lambda name: _Unreachable())
    assert client.get("/api/stats").json() == {"questions": 0, "answers": 0, "users": 0, "tags": 0}
