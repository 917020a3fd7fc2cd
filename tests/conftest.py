import itertools

import mongomock
import pytest
from fastapi.testclient import TestClient

import config
import database
from main import app
from schemas import User

_counter = itertools.count(1)


@pytest.fixture(autouse=True)
def db(monkeypatch):
    mock_db = mongomock.MongoClient().db
    monkeypatch.setattr(database, "db", mock_db)
    monkeypatch.setattr(config, "MONGO_TRANSACTIONS", False)
    return mock_db


@pytest.fixture
def client(db):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    """Insert a user and return its id."""
    def _make(name="Ada Lovelace", username=None, clerk_id=None, **extra):
        n = next(_counter)
        user = User(
            clerk_id=clerk_id or f"clerk_{n}",
            name=name,
            username=username or f"user{n}",
            **extra,
        )
        return database.create_document("user", user)
    return _make


@pytest.fixture
def reputation(db):
    def _reputation(user_id):
        return db["user"].find_one({"_id": database.to_object_id(user_id)})["reputation"]
    return _reputation
