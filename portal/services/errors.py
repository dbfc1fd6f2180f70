from __future__ import annotations

from typing import Any


class AdmissionError(Exception):
    """Base for errors surfaced to the user as a non-fatal notice."""

    status_code: int = 400
    default_code: str = "admission_error"

    def __init__(self, message: str, *, code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}


class StepValidationError(AdmissionError):
    status_code = 422
    default_code = "step_validation_failed"

    def __init__(self, step: str, errors: dict[str, str]):
        super().__init__(
            "Please correct the highlighted fields",
            details={"step": step, "errors": errors},
        )
        self.step = step
        self.errors = errors


class UploadRejectedError(AdmissionError):
    default_code = "upload_rejected"


class UploadFailedError(AdmissionError):
    status_code = 502
    default_code = "upload_failed"


class MissingDocumentsError(AdmissionError):
    default_code = "documents_missing"


class AcknowledgementRequiredError(AdmissionError):
    default_code = "acknowledgement_required"


class WizardStateError(AdmissionError):
    status_code = 409
    default_code = "invalid_wizard_state"


class ApplicationLockedError(AdmissionError):
    status_code = 409
    default_code = "application_already_submitted"

    def __init__(self, status: str, redirect_to: str = "/dashboard"):
        super().__init__(
            "You have already submitted an application",
            details={"application_status": status, "redirect_to": redirect_to},
        )


class SubmissionInProgressError(AdmissionError):
    status_code = 409
    default_code = "submission_in_progress"


class RecordNotFoundError(AdmissionError):
    status_code = 404
    default_code = "record_not_found"


class RecordWriteError(AdmissionError):
    status_code = 503
    default_code = "record_write_failed"


class RecordReadError(AdmissionError):
    status_code = 503
    default_code = "record_read_failed"


class RecordInvariantError(AdmissionError):
    status_code = 409
    default_code = "record_invariant_violation"


class MalformedRecordError(AdmissionError):
    status_code = 500
    default_code = "malformed_record"


class NoOpTransitionError(AdmissionError):
    status_code = 409
    default_code = "status_unchanged"


class InvalidTransitionError(AdmissionError):
    default_code = "invalid_status_transition"


class IdentityError(AdmissionError):
    default_code = "identity_error"

    def __init__(self, message: str, *, code: str | None = None, status_code: int = 400):
        super().__init__(message, code=code)
        self.status_code = status_code
