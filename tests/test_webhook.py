import base64
import json
from datetime import datetime, timezone

import pytest
from svix.webhooks import Webhook

import config

SECRET = "whsec_" + base64.b64encode(b"devflow-webhook-test-secret-0001").decode()


@pytest.fixture(autouse=True)
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "WEBHOOK_SECRET", SECRET)


def user_event(event_type, clerk_id="user_2abc", first="Grace", last="Hopper", email="grace@example.com"):
    return {
        "type": event_type,
        "data": {
            "id": clerk_id,
            "first_name": first,
            "last_name": last,
            "image_url": "https://img.example.com/grace.png",
            "email_addresses": [{"email_address": email}] if email else [],
        },
    }


def send(client, event, msg_id="msg_1", secret=SECRET):
    body = json.dumps(event)
    timestamp = datetime.now(timezone.utc)
    signature = Webhook(secret).sign(msg_id, timestamp, body)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": signature,
        "content-type": "application/json",
    }
    return client.post("/api/webhook", content=body, headers=headers)


def test_user_created_creates_exactly_one_user(client, db):
    response = send(client, user_event("user.created"))

    assert response.status_code == 200
    assert response.json()["message"] == "User created successfully"
    users = list(db["user"].find())
    assert len(users) == 1
    assert users[0]["clerk_id"] == "user_2abc"
    assert users[0]["username"] == "gracehopper"
    assert users[0]["name"] == "Grace Hopper"
    assert users[0]["email"] == "grace@example.com"


def test_invalid_signature_is_rejected_without_mutation(client, db):
    other_secret = "whsec_" + base64.b64encode(b"some-other-secret-entirely-0002").decode()
    response = send(client, user_event("user.created"), secret=other_secret)

    assert response.status_code == 400
    assert response.json()["detail"] == "Error processing webhook"
    assert db["user"].count_documents({}) == 0


def test_tampered_body_is_rejected(client, db):
    event = user_event("user.created")
    body = json.dumps(event)
    timestamp = datetime.now(timezone.utc)
    signature = Webhook(SECRET).sign("msg_1", timestamp, body)
    headers = {
        "svix-id": "msg_1",
        "svix-timestamp": str(int(timestamp.timestamp())),
        "svix-signature": signature,
    }
    response = client.post("/api/webhook", content=body.replace("Grace", "Mallory"), headers=headers)
    assert response.status_code == 400
    assert db["user"].count_documents({}) == 0


def test_missing_svix_headers(client, db):
    response = client.post("/api/webhook", json=user_event("user.created"))
    assert response.status_code == 400
    assert response.json()["detail"] == "Missing svix headers"
    assert db["user"].count_documents({}) == 0


def test_missing_secret(client, monkeypatch):
    monkeypatch.setattr(config, "WEBHOOK_SECRET", None)
    response = send(client, user_event("user.created"))
    assert response.status_code == 500
    assert response.json()["detail"] == "Missing WEBHOOK_SECRET"


def test_username_collisions_get_numeric_suffix(client, db):
    send(client, user_event("user.created", clerk_id="a"), msg_id="m1")
    send(client, user_event("user.created", clerk_id="b"), msg_id="m2")
    send(client, user_event("user.created", clerk_id="c"), msg_id="m3")

    usernames = sorted(u["username"] for u in db["user"].find())
    assert usernames == ["gracehopper", "gracehopper2", "gracehopper3"]


def test_username_defaults_when_name_is_empty(client, db):
    send(client, user_event("user.created", first=None, last="!!", email=None))
    user = db["user"].find_one()
    assert user["username"] == "user"
    assert user["email"] is None


def test_user_updated_keeps_username_when_name_unchanged(client, db):
    send(client, user_event("user.created"), msg_id="m1")
    response = send(client, user_event("user.updated", email="new@example.com"), msg_id="m2")

    assert response.status_code == 200
    user = db["user"].find_one({"clerk_id": "user_2abc"})
    assert user["username"] == "gracehopper"
    assert user["email"] == "new@example.com"


def test_user_updated_regenerates_username_on_rename(client, db):
    send(client, user_event("user.created"), msg_id="m1")
    send(client, user_event("user.updated", first="Amazing", last="Grace"), msg_id="m2")

    user = db["user"].find_one({"clerk_id": "user_2abc"})
    assert user["name"] == "Amazing Grace"
    assert user["username"] == "amazinggrace"


def test_user_deleted_removes_user_and_content(client, db):
    send(client, user_event("user.created"), msg_id="m1")
    user_id = str(db["user"].find_one()["_id"])
    db["question"].insert_one({"title": "Question by grace", "author": user_id, "answers": []})

    response = send(client, {"type": "user.deleted", "data": {"id": "user_2abc"}}, msg_id="m2")

    assert response.json()["message"] == "User deleted successfully"
    assert db["user"].count_documents({}) == 0
    assert db["question"].count_documents({}) == 0


def test_deleting_unknown_user_reports_failure(client):
    response = send(client, {"type": "user.deleted", "data": {"id": "ghost"}})
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to delete user"}


def test_other_event_types_are_acknowledged(client, db):
    response = send(client, {"type": "session.created", "data": {"id": "sess_1"}})
    assert response.json() == {"message": "Webhook processed successfully"}
    assert db["user"].count_documents({}) == 0


def test_rejected_email_reports_failure_without_creating_user(client, db):
    response = send(client, user_event("user.created", email="grace@localhost"))
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to create user"}
    assert db["user"].count_documents({}) == 0
