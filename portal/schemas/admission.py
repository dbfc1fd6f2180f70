from __future__ import annotations

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from portal.schemas.application import DocumentSlot


class WizardStep(str, Enum):
    PERSONAL = "personal"
    ACADEMIC = "academic"
    DOCUMENTS = "documents"
    REVIEW = "review"


class PersonalDraft(BaseModel):
    """Step 1 values as typed by the applicant; nothing is enforced until the step is validated."""

    model_config = ConfigDict(extra="forbid")

    first_name: str = ""
    last_name: str = ""
    date_of_birth: str = ""
    gender: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class AcademicDraft(BaseModel):
    model_config = ConfigDict(extra="forbid")

    high_school_name: str = ""
    high_school_percentage: float | None = None
    intermediate_school_name: str = ""
    intermediate_percentage: float | None = None
    entrance_exam_type: str = ""
    entrance_exam_rank: int | None = None
    preferred_branch: str = ""


class FormValues(BaseModel):
    personal_info: PersonalDraft = Field(default_factory=PersonalDraft)
    academic_info: AcademicDraft = Field(default_factory=AcademicDraft)


class FormValuesPatch(BaseModel):
    personal_info: PersonalDraft | None = None
    academic_info: AcademicDraft | None = None


class SlotState(BaseModel):
    url: str = ""
    staged_path: str | None = None
    staged_filename: str | None = None
    staged_content_type: str | None = None
    staged_size: int | None = None

    @property
    def pending(self) -> bool:
        return self.staged_path is not None

    def clear_staged(self) -> None:
        self.staged_path = None
        self.staged_filename = None
        self.staged_content_type = None
        self.staged_size = None


def _empty_slots() -> dict[DocumentSlot, SlotState]:
    return {slot: SlotState() for slot in DocumentSlot}


class WizardSession(BaseModel):
    uid: UUID
    step: WizardStep = WizardStep.PERSONAL
    values: FormValues = Field(default_factory=FormValues)
    slots: dict[DocumentSlot, SlotState] = Field(default_factory=_empty_slots)
    acknowledged: bool = False

    def document_urls(self) -> dict[str, str]:
        return {slot.url_field: self.slots[slot].url for slot in DocumentSlot}

    def has_all_documents(self) -> bool:
        return all(self.slots[slot].url for slot in DocumentSlot)


class SlotOut(BaseModel):
    label: str
    url: str
    uploaded: bool
    pending: bool
    staged_filename: str | None = None
    staged_size: int | None = None


class WizardStateOut(BaseModel):
    step: WizardStep
    steps: list[WizardStep] = Field(default_factory=lambda: list(WizardStep))
    values: FormValues
    documents: dict[DocumentSlot, SlotOut]
    acknowledged: bool
    submit_enabled: bool
    errors: dict[str, str] = Field(default_factory=dict)
    notice: str | None = None


class AcknowledgeRequest(BaseModel):
    acknowledged: bool


class SubmissionResult(BaseModel):
    application_status: str
    submitted_at: datetime
    redirect_to: str = "/dashboard"
