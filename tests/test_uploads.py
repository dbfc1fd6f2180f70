from pathlib import Path
from uuid import uuid4

import pytest

from conftest import PDF_BYTES, PNG_BYTES, FakeBlobStore, make_upload_file
from portal.schemas.admission import WizardSession
from portal.schemas.application import DocumentSlot
from portal.services import uploads
from portal.services.errors import UploadFailedError, UploadRejectedError
from portal.services.storage.key_generator import KeyGenerator

MAX_BYTES = 5 * 1024 * 1024


def _staged_files(staging_dir: Path) -> list[Path]:
    return [path for path in staging_dir.rglob("*") if path.is_file()]


@pytest.mark.asyncio
async def test_stage_accepts_pdf_and_keeps_original_name(staging_dir):
    uid = uuid4()
    file = make_upload_file(filename="marksheet 10th.pdf")

    state = await uploads.stage_upload(file, staging_dir, uid, DocumentSlot.HIGH_SCHOOL_CERTIFICATE, MAX_BYTES)

    assert state.pending is True
    assert state.url == ""
    assert state.staged_filename == "marksheet 10th.pdf"
    assert state.staged_content_type == "application/pdf"
    assert state.staged_size == len(PDF_BYTES)
    assert uploads.resolve_staged_path(staging_dir, state.staged_path).read_bytes() == PDF_BYTES


@pytest.mark.asyncio
async def test_stage_rejects_disallowed_type(staging_dir):
    file = make_upload_file(b"hello", filename="notes.txt", content_type="text/plain")

    with pytest.raises(UploadRejectedError) as exc_info:
        await uploads.stage_upload(file, staging_dir, uuid4(), DocumentSlot.PHOTO, MAX_BYTES)

    assert exc_info.value.message == "Only JPG, PNG, and PDF files are allowed"
    assert _staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_stage_rejects_oversized_file_before_reading(staging_dir):
    file = make_upload_file(PNG_BYTES, filename="photo.png", content_type="image/png", size=MAX_BYTES + 1)

    with pytest.raises(UploadRejectedError) as exc_info:
        await uploads.stage_upload(file, staging_dir, uuid4(), DocumentSlot.PHOTO, MAX_BYTES)

    assert exc_info.value.message == "File size should be less than 5MB"
    assert _staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_stage_rejects_content_that_does_not_match_type(staging_dir):
    file = make_upload_file(PDF_BYTES, filename="photo.png", content_type="image/png")

    with pytest.raises(UploadRejectedError):
        await uploads.stage_upload(file, staging_dir, uuid4(), DocumentSlot.PHOTO, MAX_BYTES)

    assert _staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_upload_twice_without_new_selection_transfers_once(staging_dir):
    session = WizardSession(uid=uuid4())
    blob_store = FakeBlobStore()
    session.slots[DocumentSlot.PHOTO] = await uploads.stage_upload(
        make_upload_file(PNG_BYTES, filename="me.png", content_type="image/png"),
        staging_dir,
        session.uid,
        DocumentSlot.PHOTO,
        MAX_BYTES,
    )

    first = await uploads.upload_slot(session, DocumentSlot.PHOTO, blob_store, staging_dir)
    second = await uploads.upload_slot(session, DocumentSlot.PHOTO, blob_store, staging_dir)

    assert first == second
    assert len(blob_store.uploads) == 1
    assert blob_store.uploads[0].startswith(f"photos/{session.uid}_")
    assert session.slots[DocumentSlot.PHOTO].pending is False
    assert _staged_files(staging_dir) == []


@pytest.mark.asyncio
async def test_failed_transfer_keeps_staged_file_and_other_slots(staging_dir):
    session = WizardSession(uid=uuid4())
    session.slots[DocumentSlot.HIGH_SCHOOL_CERTIFICATE].url = "https://files.example.com/keep.pdf"
    session.slots[DocumentSlot.PHOTO] = await uploads.stage_upload(
        make_upload_file(), staging_dir, session.uid, DocumentSlot.PHOTO, MAX_BYTES
    )
    blob_store = FakeBlobStore(fail_folders={"photos"})

    with pytest.raises(UploadFailedError) as exc_info:
        await uploads.upload_slot(session, DocumentSlot.PHOTO, blob_store, staging_dir)

    assert exc_info.value.message == "Failed to upload Photo"
    state = session.slots[DocumentSlot.PHOTO]
    assert state.pending is True
    assert state.url == ""
    assert uploads.resolve_staged_path(staging_dir, state.staged_path).exists()
    assert session.slots[DocumentSlot.HIGH_SCHOOL_CERTIFICATE].url == "https://files.example.com/keep.pdf"


@pytest.mark.asyncio
async def test_missing_staged_file_asks_for_new_selection(staging_dir):
    session = WizardSession(uid=uuid4())
    state = await uploads.stage_upload(make_upload_file(), staging_dir, session.uid, DocumentSlot.PHOTO, MAX_BYTES)
    uploads.resolve_staged_path(staging_dir, state.staged_path).unlink()
    session.slots[DocumentSlot.PHOTO] = state

    with pytest.raises(UploadFailedError) as exc_info:
        await uploads.upload_slot(session, DocumentSlot.PHOTO, FakeBlobStore(), staging_dir)

    assert exc_info.value.message == "Please select the Photo again"
    assert session.slots[DocumentSlot.PHOTO].pending is False


def test_staged_path_cannot_escape_staging_dir(staging_dir):
    with pytest.raises(ValueError):
        uploads.resolve_staged_path(staging_dir, "../outside.pdf")


def test_object_keys_are_grouped_by_slot_and_owner():
    uid = uuid4()

    key = KeyGenerator.generate_object_key(DocumentSlot.ENTRANCE_EXAM_RESULT, uid, "../rank card (final).pdf")

    folder, name = key.split("/")
    assert folder == "entrance-exam-results"
    assert name.startswith(f"{uid}_")
    assert name.endswith("rank_card__final_.pdf")
    assert KeyGenerator.owner_of(key) == str(uid)
    assert KeyGenerator.owner_of("elsewhere/" + name) is None
