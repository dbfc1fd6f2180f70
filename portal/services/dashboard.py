from portal.models import ApplicantRecord
from portal.schemas.dashboard import DashboardOut

_STATUS_PROGRESS = {
    "submitted": 50,
    "under_review": 75,
    "approved": 100,
    "rejected": 100,
}

_BLOCK_WEIGHTS = (
    ("personal_info", 20),
    ("academic_info", 20),
    ("documents", 10),
)

APPLY_PATH = "/apply"


def compute_progress(record: ApplicantRecord) -> int:
    if record.application_status in _STATUS_PROGRESS:
        return _STATUS_PROGRESS[record.application_status]
    return sum(weight for block, weight in _BLOCK_WEIGHTS if getattr(record, block))


def build_dashboard(record: ApplicantRecord) -> DashboardOut:
    return DashboardOut(
        display_name=record.display_name,
        email=record.email,
        application_status=record.application_status,
        progress=compute_progress(record),
        has_personal_info=bool(record.personal_info),
        has_academic_info=bool(record.academic_info),
        has_documents=bool(record.documents),
        submitted_at=record.submitted_at,
        next_action=APPLY_PATH if record.application_status == "incomplete" else None,
    )
