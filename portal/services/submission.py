from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession

from portal.models import ApplicantRecord
from portal.schemas.admission import SubmissionResult, WizardSession, WizardStep
from portal.schemas.application import DocumentSlot
from portal.services import records, uploads, wizard
from portal.services.audit import record_audit_event
from portal.services.errors import (
    AcknowledgementRequiredError,
    MissingDocumentsError,
    SubmissionInProgressError,
    WizardStateError,
)
from portal.services.storage.adapter import BlobStore
from portal.services.wizard_store import WizardSessionStore

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"


async def _submit(
    db: AsyncSession,
    record: ApplicantRecord,
    session: WizardSession,
    store: WizardSessionStore,
    blob_store: BlobStore,
    staging_dir: Path,
) -> SubmissionResult:
    personal = wizard.validate_step(session, WizardStep.PERSONAL)
    academic = wizard.validate_step(session, WizardStep.ACADEMIC)

    try:
        for slot in DocumentSlot:
            await uploads.upload_slot(session, slot, blob_store, staging_dir)
    finally:
        # keep URLs of the slots that did make it so a retry does not send them again
        await store.save(session)

    missing = [slot.value for slot in DocumentSlot if not session.slots[slot].url]
    if missing:
        raise MissingDocumentsError(
            "Please upload all required documents", details={"missing": missing}
        )

    submitted_at = datetime.now(timezone.utc)
    updates = {
        "personal_info": personal.model_dump(mode="json"),
        "academic_info": academic.model_dump(mode="json"),
        "documents": session.document_urls(),
        "application_status": "submitted",
        "submitted_at": submitted_at,
    }
    await records.update_record(db, record, updates)
    await store.discard(session.uid)

    record_audit_event(
        "application.submitted",
        actor_id=session.uid,
        resource_id=record.uid,
        old_value={"application_status": "incomplete"},
        new_value={"application_status": "submitted", "submitted_at": submitted_at},
    )
    logger.info("Application submitted for %s", record.uid)
    return SubmissionResult(
        application_status=record.application_status,
        submitted_at=record.submitted_at or submitted_at,
        redirect_to=DASHBOARD_PATH,
    )


async def submit_application(
    db: AsyncSession,
    record: ApplicantRecord,
    session: WizardSession,
    store: WizardSessionStore,
    blob_store: BlobStore,
    staging_dir: Path,
) -> SubmissionResult:
    """Upload whatever is still staged, then write the whole application in one update.

    Nothing is rolled back when the final write fails; uploaded URLs stay in
    the wizard session and are reused by the next attempt.
    """
    wizard.guard(record)
    if session.step != WizardStep.REVIEW:
        raise WizardStateError(
            "Applications can only be submitted from the review step",
            details={"step": session.step.value},
        )
    if not session.acknowledged:
        raise AcknowledgementRequiredError("Please confirm the declaration before submitting")

    if not await store.claim_submission(session.uid):
        raise SubmissionInProgressError("Your application is already being submitted")
    try:
        return await _submit(db, record, session, store, blob_store, staging_dir)
    finally:
        await store.release_submission(session.uid)
