from pathlib import Path

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api import deps
from portal.core.settings import settings
from portal.db.session import get_db
from portal.models import ApplicantRecord
from portal.schemas.admission import (
    AcknowledgeRequest,
    FormValuesPatch,
    SubmissionResult,
    WizardSession,
    WizardStateOut,
)
from portal.schemas.application import DocumentSlot
from portal.services import submission, wizard
from portal.services.storage.adapter import BlobStore
from portal.services.wizard_store import WizardSessionStore

router = APIRouter(prefix="/me/admission", tags=["admission"])


async def _state(
    session: WizardSession,
    store: WizardSessionStore,
    *,
    errors: dict[str, str] | None = None,
    notice: str | None = None,
) -> WizardStateOut:
    in_flight = await store.submission_in_flight(session.uid)
    return wizard.build_state(session, in_flight=in_flight, errors=errors, notice=notice)


@router.get("", response_model=WizardStateOut)
async def open_wizard(
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    return await _state(session, store)


@router.patch("/values", response_model=WizardStateOut)
async def update_values(
    payload: FormValuesPatch,
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    errors = wizard.apply_patch(session, payload)
    await store.save(session)
    return await _state(session, store, errors=errors)


@router.post("/next", response_model=WizardStateOut)
async def next_step(
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
    db: AsyncSession = Depends(get_db),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    notice = await wizard.advance(db, record, session)
    await store.save(session)
    return await _state(session, store, notice=notice)


@router.post("/back", response_model=WizardStateOut)
async def previous_step(
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    wizard.retreat(session)
    await store.save(session)
    return await _state(session, store)


@router.post("/documents/{slot}", response_model=WizardStateOut)
async def select_document(
    slot: DocumentSlot,
    file: UploadFile = File(...),
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
    staging_dir: Path = Depends(deps.get_upload_staging_dir),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    await wizard.select_document(session, slot, file, staging_dir, settings.max_upload_bytes)
    await store.save(session)
    return await _state(session, store)


@router.post("/documents/{slot}/upload", response_model=WizardStateOut)
async def upload_document(
    slot: DocumentSlot,
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
    blob_store: BlobStore = Depends(deps.get_blob_store_dep),
    staging_dir: Path = Depends(deps.get_upload_staging_dir),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    try:
        await wizard.upload_document(session, slot, blob_store, staging_dir)
    finally:
        await store.save(session)
    return await _state(session, store)


@router.post("/acknowledge", response_model=WizardStateOut)
async def acknowledge(
    payload: AcknowledgeRequest,
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
) -> WizardStateOut:
    session = await wizard.enter(record, store)
    wizard.acknowledge(session, payload.acknowledged)
    await store.save(session)
    return await _state(session, store)


@router.post("/submit", response_model=SubmissionResult)
async def submit(
    record: ApplicantRecord = Depends(deps.get_current_record),
    store: WizardSessionStore = Depends(deps.get_wizard_store),
    blob_store: BlobStore = Depends(deps.get_blob_store_dep),
    staging_dir: Path = Depends(deps.get_upload_staging_dir),
    db: AsyncSession = Depends(get_db),
) -> SubmissionResult:
    session = await wizard.enter(record, store)
    return await submission.submit_application(db, record, session, store, blob_store, staging_dir)
