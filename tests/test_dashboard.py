import pytest

from conftest import VALID_ACADEMIC, VALID_PERSONAL, make_record, make_submitted_record
from portal.services.dashboard import compute_progress


@pytest.mark.parametrize(
    ("record", "expected"),
    [
        (make_record(), 0),
        (make_record(personal_info=VALID_PERSONAL), 20),
        (make_record(personal_info=VALID_PERSONAL, academic_info=VALID_ACADEMIC), 40),
        (make_submitted_record(), 50),
        (make_submitted_record(application_status="under_review"), 75),
        (make_submitted_record(application_status="approved"), 100),
        (make_submitted_record(application_status="rejected"), 100),
    ],
)
def test_progress_follows_status_then_saved_blocks(record, expected):
    assert compute_progress(record) == expected


def test_dashboard_points_incomplete_applicant_to_form(client, test_record):
    test_record.personal_info = dict(VALID_PERSONAL)

    response = client.get("/api/v1/me/dashboard")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["application_status"] == "incomplete"
    assert data["progress"] == 20
    assert data["has_personal_info"] is True
    assert data["has_documents"] is False
    assert data["next_action"] == "/apply"


def test_dashboard_after_submission(client, test_record):
    submitted = make_submitted_record(application_status="under_review")
    for field in ("application_status", "personal_info", "academic_info", "documents", "submitted_at"):
        setattr(test_record, field, getattr(submitted, field))

    data = client.get("/api/v1/me/dashboard").json()["data"]

    assert data["progress"] == 75
    assert data["next_action"] is None
    assert data["submitted_at"].startswith("2026-06-01")
