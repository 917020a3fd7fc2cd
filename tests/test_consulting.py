import pytest


@pytest.fixture
def expert(client, make_user):
    expert_id = make_user(name="Expert Person")
    response = client.put("/api/consulting/availability", json={
        "expert_id": expert_id,
        "date": "2026-11-02",
        "time_slots": ["09:00", "10:00", "11:00"],
        "rate": 80,
    })
    assert response.status_code == 200
    return expert_id


def book(client, expert_id, client_id, slot="10:00", day="2026-11-02"):
    return client.post("/api/consulting/sessions", json={
        "expert_id": expert_id,
        "client_id": client_id,
        "date": day,
        "time_slot": slot,
        "topic": "Code review",
    })


def slots(client, expert_id):
    days = client.get("/api/consulting/availability", params={"expert_id": expert_id}).json()["availability"]
    return days[0]["time_slots"] if days else None


def test_availability_is_one_document_per_day(client, db, expert):
    client.put("/api/consulting/availability", json={
        "expert_id": expert, "date": "2026-11-02", "time_slots": ["14:00"], "rate": 100,
    })
    client.put("/api/consulting/availability", json={
        "expert_id": expert, "date": "2026-11-01", "time_slots": ["08:00"], "rate": 100,
    })

    days = client.get("/api/consulting/availability", params={"expert_id": expert}).json()["availability"]
    assert [d["time_slots"] for d in days] == [["08:00"], ["14:00"]]
    assert db["expertavailability"].count_documents({"expert": expert}) == 2

    ranged = client.get("/api/consulting/availability", params={
        "expert_id": expert, "start_date": "2026-11-02", "end_date": "2026-11-30",
    }).json()["availability"]
    assert len(ranged) == 1


def test_booking_takes_slot_and_rate(client, make_user, expert):
    customer = make_user()
    response = book(client, expert, customer)

    assert response.status_code == 200
    session = response.json()
    assert session["rate"] == 80
    assert session["status"] == "scheduled"
    assert session["duration"] == 60
    assert slots(client, expert) == ["09:00", "11:00"]


def test_same_slot_cannot_be_booked_twice(client, db, make_user, expert):
    assert book(client, expert, make_user()).status_code == 200

    second = book(client, expert, make_user())
    assert second.status_code == 409
    assert db["consultingsession"].count_documents({}) == 1


def test_booking_without_availability(client, make_user, expert):
    response = book(client, expert, make_user(), day="2026-12-25")
    assert response.status_code == 404
    assert response.json()["detail"] == "Expert is not available at the requested time"


def test_cancelling_releases_slot(client, make_user, expert):
    session = book(client, expert, make_user()).json()

    updated = client.patch(f"/api/consulting/sessions/{session['_id']}", json={"status": "cancelled"}).json()
    assert updated["status"] == "cancelled"
    assert sorted(slots(client, expert)) == ["09:00", "10:00", "11:00"]
    assert book(client, expert, make_user()).status_code == 200


def test_sessions_listed_by_role(client, make_user, expert):
    customer = make_user()
    book(client, expert, customer, slot="11:00")
    book(client, expert, customer, slot="09:00")

    as_client = client.get("/api/consulting/sessions", params={"user_id": customer}).json()
    assert len(as_client["sessions"]) == 2
    assert as_client["sessions"][0]["expert"]["_id"] == expert

    as_expert = client.get("/api/consulting/sessions", params={"user_id": expert, "role": "expert"}).json()
    assert len(as_expert["sessions"]) == 2

    cancelled = client.get(
        "/api/consulting/sessions", params={"user_id": customer, "status": "cancelled"}
    ).json()
    assert cancelled["sessions"] == []


def test_resetting_availability_keeps_booked_slots_off_offer(client, db, make_user, expert):
    assert book(client, expert, make_user()).status_code == 200

    body = client.put("/api/consulting/availability", json={
        "expert_id": expert, "date": "2026-11-02", "time_slots": ["09:00", "10:00", "11:00"], "rate": 90,
    }).json()
    assert body["time_slots"] == ["09:00", "11:00"]
    assert body["rate"] == 90

    assert book(client, expert, make_user()).status_code == 409
    assert db["consultingsession"].count_documents({"time_slot": "10:00", "status": "scheduled"}) == 1


def test_rescheduling_cancelled_session_retakes_slot(client, make_user, expert):
    session = book(client, expert, make_user()).json()
    url = f"/api/consulting/sessions/{session['_id']}"
    client.patch(url, json={"status": "cancelled"})

    restored = client.patch(url, json={"status": "scheduled"})
    assert restored.status_code == 200
    assert slots(client, expert) == ["09:00", "11:00"]
    assert book(client, expert, make_user()).status_code == 409


def test_rescheduling_fails_when_slot_was_rebooked(client, db, make_user, expert):
    session = book(client, expert, make_user()).json()
    url = f"/api/consulting/sessions/{session['_id']}"
    client.patch(url, json={"status": "cancelled"})
    assert book(client, expert, make_user()).status_code == 200

    response = client.patch(url, json={"status": "scheduled"})
    assert response.status_code == 409
    assert db["consultingsession"].count_documents({"time_slot": "10:00", "status": "scheduled"}) == 1
