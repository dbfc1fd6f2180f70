from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from conftest import VALID_PERSONAL, make_identity, make_record, make_submitted_record
from portal.models import ApplicantRecord
from portal.schemas.application import IncompleteApplication, SubmittedApplication
from portal.services import records
from portal.services.errors import (
    MalformedRecordError,
    RecordInvariantError,
    RecordWriteError,
)


@pytest.mark.asyncio
async def test_ensure_record_creates_student_record_on_first_sign_in(fake_db):
    identity = make_identity(email="new@example.com", display_name="New Student")

    record = await records.ensure_record(fake_db, identity)

    assert record.uid == identity.id
    assert record.role == "student"
    assert record.application_status == "incomplete"
    assert record.email == "new@example.com"
    assert record.display_name == "New Student"
    assert fake_db.added == [record]
    assert fake_db.committed is True


@pytest.mark.asyncio
async def test_ensure_record_returns_existing_record(fake_db, test_identity, test_record):
    fake_db.on_get(ApplicantRecord, test_identity.id, test_record)

    record = await records.ensure_record(fake_db, test_identity)

    assert record is test_record
    assert fake_db.added == []


@pytest.mark.asyncio
async def test_ensure_record_recovers_from_concurrent_create(fake_db, test_identity, test_record):
    class RacingSession(type(fake_db)):
        async def commit(self):
            # the other request's row becomes visible once ours fails
            self.on_get(ApplicantRecord, test_identity.id, test_record)
            raise IntegrityError("insert", {}, Exception("duplicate key"))

    db = RacingSession()

    record = await records.ensure_record(db, test_identity)

    assert record is test_record
    assert db.rolled_back is True


@pytest.mark.asyncio
async def test_update_merges_block_keys(fake_db):
    record = make_record(personal_info={"first_name": "Asha", "city": "Lucknow"})

    await records.update_record(fake_db, record, {"personal_info": {"city": "Kanpur", "zip_code": "208001"}})

    assert record.personal_info == {"first_name": "Asha", "city": "Kanpur", "zip_code": "208001"}
    assert fake_db.committed is True


@pytest.mark.asyncio
async def test_applicant_cannot_write_role(fake_db, test_record):
    with pytest.raises(RecordInvariantError) as exc_info:
        await records.update_record(fake_db, test_record, {"role": "admin"})

    assert exc_info.value.details == {"fields": ["role"]}
    assert test_record.role == "student"
    assert fake_db.committed is False


@pytest.mark.asyncio
async def test_submitted_at_cannot_change(fake_db):
    record = make_submitted_record()

    with pytest.raises(RecordInvariantError):
        await records.update_record(
            fake_db, record, {"submitted_at": datetime(2030, 1, 1, tzinfo=timezone.utc)}
        )


@pytest.mark.asyncio
async def test_status_needs_submission_time(fake_db, test_record):
    with pytest.raises(RecordInvariantError):
        await records.update_record(fake_db, test_record, {"application_status": "submitted"})


@pytest.mark.asyncio
async def test_applicant_cannot_move_submitted_status(fake_db):
    record = make_submitted_record()

    with pytest.raises(RecordInvariantError):
        await records.update_record(fake_db, record, {"application_status": "approved"})

    assert record.application_status == "submitted"


@pytest.mark.asyncio
async def test_admin_may_only_write_status(fake_db):
    record = make_submitted_record()

    with pytest.raises(RecordInvariantError):
        await records.update_record(fake_db, record, {"personal_info": {"city": "Agra"}}, admin=True)

    await records.update_record(fake_db, record, {"application_status": "approved"}, admin=True)
    assert record.application_status == "approved"


@pytest.mark.asyncio
async def test_write_failure_is_reported(fake_db, test_record):
    fake_db.fail_commit = OperationalError("update", {}, Exception("connection lost"))

    with pytest.raises(RecordWriteError):
        await records.update_record(fake_db, test_record, {"city": "Agra"})

    assert fake_db.rolled_back is True


def test_parse_record_tags_by_status():
    assert isinstance(records.parse_record(make_record()), IncompleteApplication)
    assert isinstance(records.parse_record(make_submitted_record()), SubmittedApplication)


def test_parse_record_reports_malformed_rows():
    record = make_submitted_record()
    record.personal_info = {**VALID_PERSONAL, "phone": "12"}

    with pytest.raises(MalformedRecordError) as exc_info:
        records.parse_record(record)

    assert exc_info.value.details["uid"] == str(record.uid)


def test_parse_record_rejects_submitted_row_without_blocks():
    record = make_submitted_record()
    record.documents = None

    with pytest.raises(MalformedRecordError):
        records.parse_record(record)
