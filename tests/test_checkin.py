import re

import pytest

from runner_checkin import models

from conftest import make_data_uri


@pytest.fixture
def runner(event, make_participant):
    return make_participant(event, "42", first_name="Maria", last_name="Santos")


def _check_in(client, headers, runner_id, **overrides):
    payload = {
        "participant_id": runner_id,
        "photo": make_data_uri("JPEG"),
        "signature": make_data_uri("PNG", mode="RGBA", color=(0, 0, 0, 0)),
    }
    payload.update(overrides)
    return client.post("/api/checkin", json=payload, headers=headers)


def test_check_in_stores_evidence(client, auth_headers, db_session, event, runner, storage):
    response = _check_in(client, auth_headers, runner.id)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Check-in completed successfully"
    assert body["checkin_at"]

    db_session.expire_all()
    checked = db_session.get(models.Participant, runner.id)
    assert checked.checkin_at is not None
    assert checked.checkin_by == "desk-staff"
    assert re.fullmatch(rf"runner-photos/event_{event.id}_bib_42_\d+\.jpg", checked.uploaded_image_url)
    assert re.fullmatch(rf"runner-signatures/event_{event.id}_bib_42_\d+\.png", checked.signature_url)

    photo = storage.objects[checked.uploaded_image_url]
    assert photo["content_type"] == "image/jpeg"
    assert photo["body"][:2] == b"\xff\xd8"
    assert photo["metadata"]["type"] == "checkin_photo"
    assert photo["metadata"]["participant_id"] == runner.id

    signature = storage.objects[checked.signature_url]
    assert signature["content_type"] == "image/png"
    assert signature["body"][:8] == b"\x89PNG\r\n\x1a\n"
    assert signature["metadata"]["type"] == "checkin_signature"


def test_check_in_records_operator_and_note(client, auth_headers, db_session, runner):
    response = _check_in(client, auth_headers, runner.id, checkin_by="Volunteer Gate 3", note="Picked up by sister")

    assert response.status_code == 200
    db_session.expire_all()
    checked = db_session.get(models.Participant, runner.id)
    assert checked.checkin_by == "Volunteer Gate 3"
    assert checked.note == "Picked up by sister"


@pytest.mark.parametrize("missing", ["participant_id", "photo", "signature"])
def test_check_in_requires_all_fields(client, auth_headers, runner, missing):
    response = _check_in(client, auth_headers, runner.id, **{missing: None})

    assert response.status_code == 400
    assert response.json()["detail"] == "Participant ID, photo, and signature are required"


def test_check_in_unknown_participant(client, auth_headers, db_session):
    response = _check_in(client, auth_headers, 999)

    assert response.status_code == 404


def test_check_in_twice_is_rejected(client, auth_headers, runner, storage):
    assert _check_in(client, auth_headers, runner.id).status_code == 200

    response = _check_in(client, auth_headers, runner.id)

    assert response.status_code == 400
    assert response.json()["detail"] == "Participant already checked in"
    assert len(storage.objects) == 2


def test_check_in_with_invalid_image(client, auth_headers, db_session, runner, storage):
    response = _check_in(client, auth_headers, runner.id, photo="not a data uri")

    assert response.status_code == 400
    assert storage.objects == {}
    db_session.expire_all()
    assert db_session.get(models.Participant, runner.id).checkin_at is None


def test_storage_failure_leaves_participant_unchanged(client, auth_headers, db_session, runner, storage):
    storage.fail_uploads = True

    response = _check_in(client, auth_headers, runner.id)

    assert response.status_code == 502
    db_session.expire_all()
    participant = db_session.get(models.Participant, runner.id)
    assert participant.checkin_at is None
    assert participant.uploaded_image_url is None


def test_bib_is_sanitized_in_object_keys(client, auth_headers, db_session, event, make_participant):
    odd = make_participant(event, "A/12 #3")

    assert _check_in(client, auth_headers, odd.id).status_code == 200

    db_session.expire_all()
    assert "_bib_A_12__3_" in db_session.get(models.Participant, odd.id).uploaded_image_url


def test_undo_check_in(client, auth_headers, db_session, runner, storage):
    _check_in(client, auth_headers, runner.id, checkin_by="Gate 2", note="late")

    response = client.delete(f"/api/checkin/{runner.id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Check-in removed successfully"
    db_session.expire_all()
    participant = db_session.get(models.Participant, runner.id)
    assert participant.checkin_at is None
    assert participant.signature_url is None
    assert participant.checkin_by is None
    assert participant.note is None
    assert len(storage.objects) == 2
    assert _check_in(client, auth_headers, runner.id).status_code == 200


def test_undo_when_not_checked_in(client, auth_headers, runner):
    response = client.delete(f"/api/checkin/{runner.id}", headers=auth_headers)

    assert response.status_code == 400


def test_undo_unknown_participant(client, auth_headers, db_session):
    assert client.delete("/api/checkin/999", headers=auth_headers).status_code == 404


def test_check_in_requires_login(client, runner):
    assert _check_in(client, {}, runner.id).status_code == 401
