from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal.schemas.admin import (
    ApplicationListResponse,
    ApplicationSummary,
    ReviewQuery,
    ReviewSort,
    SortDirection,
)
from portal.schemas.application import SubmittedApplication
from portal.services import records
from portal.services.audit import record_audit_event
from portal.services.errors import (
    InvalidTransitionError,
    MalformedRecordError,
    NoOpTransitionError,
    RecordNotFoundError,
)

logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("submitted", "under_review", "approved", "rejected")
# applications never go back to submitted once a reviewer has them
ADMIN_TARGETS = ("under_review", "approved", "rejected")


def allowed_transitions(current: str) -> list[str]:
    if current not in REVIEW_STATUSES:
        return []
    return [status for status in ADMIN_TARGETS if status != current]


def summarize(view: SubmittedApplication) -> ApplicationSummary:
    personal = view.personal_info
    academic = view.academic_info
    return ApplicationSummary(
        uid=view.uid,
        full_name=f"{personal.first_name} {personal.last_name}".strip(),
        email=personal.email,
        phone=personal.phone,
        preferred_branch=academic.preferred_branch.value,
        entrance_exam_type=academic.entrance_exam_type.value,
        entrance_exam_rank=academic.entrance_exam_rank,
        high_school_percentage=academic.high_school_percentage,
        intermediate_percentage=academic.intermediate_percentage,
        application_status=view.application_status,
        submitted_at=view.submitted_at,
        documents=view.documents.model_dump(),
        allowed_transitions=allowed_transitions(view.application_status),
    )


async def fetch_applications(db: AsyncSession) -> tuple[list[ApplicationSummary], int]:
    """Load every reviewable application; rows that fail validation are logged and left out."""
    rows = await records.list_reviewable(db)
    summaries: list[ApplicationSummary] = []
    skipped = 0
    for row in rows:
        try:
            view = records.parse_record(row)
        except MalformedRecordError:
            skipped += 1
            continue
        if not isinstance(view, SubmittedApplication):
            skipped += 1
            continue
        summaries.append(summarize(view))
    if skipped:
        logger.warning("Skipped %s malformed applications in review list", skipped)
    return summaries, skipped


_SORT_KEYS = {
    ReviewSort.DATE: lambda item: item.submitted_at,
    ReviewSort.NAME: lambda item: item.full_name.lower(),
    ReviewSort.STATUS: lambda item: item.application_status,
}


def _matches(item: ApplicationSummary, term: str) -> bool:
    return term in item.full_name.lower() or term in item.email.lower() or term in item.phone


def apply_review_query(items: list[ApplicationSummary], query: ReviewQuery) -> list[ApplicationSummary]:
    term = query.search.strip().lower()
    filtered = [
        item
        for item in items
        if (not term or _matches(item, term))
        and (query.status is None or item.application_status == query.status.value)
        and (not query.branch or item.preferred_branch == query.branch)
    ]
    return sorted(filtered, key=_SORT_KEYS[query.sort_by], reverse=query.sort_direction == SortDirection.DESC)


def branches(items: list[ApplicationSummary]) -> list[str]:
    return sorted({item.preferred_branch for item in items if item.preferred_branch})


def status_counts(items: list[ApplicationSummary]) -> dict[str, int]:
    counts = dict.fromkeys(REVIEW_STATUSES, 0)
    for item in items:
        counts[item.application_status] = counts.get(item.application_status, 0) + 1
    return counts


async def list_applications(db: AsyncSession, query: ReviewQuery) -> ApplicationListResponse:
    items, skipped = await fetch_applications(db)
    visible = apply_review_query(items, query)
    return ApplicationListResponse(
        items=visible,
        total=len(visible),
        branches=branches(items),
        status_counts=status_counts(items),
        skipped=skipped,
    )


async def transition_status(
    db: AsyncSession, uid: UUID, target: str, *, actor_id: UUID
) -> ApplicationSummary:
    """Move a submitted application to another review status; only that one field changes."""
    if target not in ADMIN_TARGETS:
        raise InvalidTransitionError(
            f"Cannot move an application to '{target}'", details={"allowed": list(ADMIN_TARGETS)}
        )
    record = await records.get_record(db, uid)
    if record is None:
        raise RecordNotFoundError("Application not found", details={"uid": str(uid)})
    current = record.application_status
    if current not in REVIEW_STATUSES:
        raise InvalidTransitionError(
            "Only submitted applications can be reviewed", details={"application_status": current}
        )
    if current == target:
        raise NoOpTransitionError(
            f"Application is already {target}", details={"application_status": current}
        )

    await records.update_record(db, record, {"application_status": target}, admin=True)
    record_audit_event(
        "application.status_changed",
        actor_id=actor_id,
        resource_id=uid,
        old_value={"application_status": current},
        new_value={"application_status": target},
    )
    logger.info("Application %s moved from %s to %s", uid, current, target)
    return summarize(records.parse_record(record))
