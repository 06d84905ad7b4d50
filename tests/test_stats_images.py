from datetime import datetime, timezone


def test_stats_for_empty_event(client, auth_headers, event):
    response = client.get("/api/stats", params={"event_id": event.id}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"total": 0, "checked_in": 0, "remaining": 0, "check_in_percentage": 0}


def test_stats_count_checked_in_runners(client, auth_headers, event, make_participant):
    make_participant(event, "1", checkin_at=datetime(2026, 11, 8, 5, 30, tzinfo=timezone.utc), checkin_by="desk")
    make_participant(event, "2")
    make_participant(event, "3")

    response = client.get("/api/stats", params={"event_id": event.id}, headers=auth_headers)

    assert response.json() == {"total": 3, "checked_in": 1, "remaining": 2, "check_in_percentage": 33}


def test_stats_percentage_rounds_halves_up(client, auth_headers, event, make_participant):
    make_participant(event, "1", checkin_at=datetime(2026, 11, 8, 5, 30, tzinfo=timezone.utc))
    for bib in range(2, 9):
        make_participant(event, str(bib))

    response = client.get("/api/stats", params={"event_id": event.id}, headers=auth_headers)

    assert response.json()["check_in_percentage"] == 13


def test_stats_requires_event_id(client, auth_headers):
    assert client.get("/api/stats", headers=auth_headers).status_code == 422


def test_image_is_served_with_long_cache(client, storage):
    storage.put_object("runner-photos/event_1_bib_42_1700000000000.jpg", b"\xff\xd8jpeg", "image/jpeg")

    response = client.get("/api/images/runner-photos/event_1_bib_42_1700000000000.jpg")

    assert response.status_code == 200
    assert response.content == b"\xff\xd8jpeg"
    assert response.headers["content-type"] == "image/jpeg"
    assert response.headers["cache-control"] == "public, max-age=31536000"
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["x-app-version"] == "1.0.0"


def test_signature_keeps_its_content_type(client, storage):
    storage.put_object("runner-signatures/event_1_bib_42_1.png", b"\x89PNG", "image/png")

    response = client.get("/api/images/runner-signatures/event_1_bib_42_1.png")

    assert response.headers["content-type"] == "image/png"


def test_missing_image(client, storage):
    response = client.get("/api/images/runner-photos/nope.jpg")

    assert response.status_code == 404
    assert response.json()["detail"] == "Image not found"


def test_root(client):
    assert client.get("/").status_code == 200
