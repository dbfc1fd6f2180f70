from __future__ import annotations

import re
from datetime import date, datetime
from enum import Enum
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, ValidationInfo, field_validator


class ApplicationStatus(str, Enum):
    INCOMPLETE = "incomplete"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApplicantRole(str, Enum):
    STUDENT = "student"
    ADMIN = "admin"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class EntranceExamType(str, Enum):
    JEE_MAIN = "JEE Main"
    JEE_ADVANCED = "JEE Advanced"
    UPSEE = "UPSEE"
    OTHER = "Other"


class Branch(str, Enum):
    CSE = "Computer Science and Engineering"
    ECE = "Electronics and Communication Engineering"
    EE = "Electrical Engineering"
    ME = "Mechanical Engineering"
    CE = "Civil Engineering"
    CHE = "Chemical Engineering"
    IT = "Information Technology"


INDIAN_STATES = (
    "Andhra Pradesh",
    "Arunachal Pradesh",
    "Assam",
    "Bihar",
    "Chhattisgarh",
    "Goa",
    "Gujarat",
    "Haryana",
    "Himachal Pradesh",
    "Jharkhand",
    "Karnataka",
    "Kerala",
    "Madhya Pradesh",
    "Maharashtra",
    "Manipur",
    "Meghalaya",
    "Mizoram",
    "Nagaland",
    "Odisha",
    "Punjab",
    "Rajasthan",
    "Sikkim",
    "Tamil Nadu",
    "Telangana",
    "Tripura",
    "Uttar Pradesh",
    "Uttarakhand",
    "West Bengal",
)

PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
ZIP_PATTERN = re.compile(r"^[0-9]{6}$")

FIELD_LABELS = {
    "first_name": "First name",
    "last_name": "Last name",
    "date_of_birth": "Date of birth",
    "gender": "Gender",
    "email": "Email",
    "phone": "Phone number",
    "address": "Address",
    "city": "City",
    "state": "State",
    "zip_code": "Zip code",
    "high_school_name": "High school name",
    "high_school_percentage": "High school percentage",
    "intermediate_school_name": "Intermediate school name",
    "intermediate_percentage": "Intermediate percentage",
    "entrance_exam_type": "Entrance exam type",
    "entrance_exam_rank": "Entrance exam rank",
    "preferred_branch": "Preferred branch",
}

# Messages for errors raised by pydantic itself rather than our validators
FALLBACK_MESSAGES = {
    "email": "Invalid email",
    "date_of_birth": "Invalid date",
    "gender": "Select a valid gender",
    "entrance_exam_type": "Select a valid entrance exam type",
    "preferred_branch": "Select a valid branch",
    "high_school_percentage": "Percentage must be a number",
    "intermediate_percentage": "Percentage must be a number",
    "entrance_exam_rank": "Rank must be a number",
}


def _reject_blank(value, info: ValidationInfo):
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError(f"{FIELD_LABELS[info.field_name]} is required")
    return value


def _check_percentage(value: float) -> float:
    if value < 0:
        raise ValueError("Percentage cannot be negative")
    if value > 100:
        raise ValueError("Percentage cannot exceed 100")
    return value


class PersonalInfo(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    email: EmailStr
    phone: str
    address: str
    city: str
    state: str
    zip_code: str

    @field_validator(
        "first_name",
        "last_name",
        "date_of_birth",
        "gender",
        "email",
        "phone",
        "address",
        "city",
        "state",
        "zip_code",
        mode="before",
    )
    @classmethod
    def check_required(cls, value, info: ValidationInfo):
        return _reject_blank(value, info)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: str) -> str:
        if not PHONE_PATTERN.match(value):
            raise ValueError("Phone number must be 10 digits")
        return value

    @field_validator("zip_code")
    @classmethod
    def check_zip(cls, value: str) -> str:
        if not ZIP_PATTERN.match(value):
            raise ValueError("Zip code must be 6 digits")
        return value

    @field_validator("state")
    @classmethod
    def check_state(cls, value: str) -> str:
        if value not in INDIAN_STATES:
            raise ValueError("Select a valid state")
        return value


class AcademicInfo(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    high_school_name: str
    high_school_percentage: float
    intermediate_school_name: str
    intermediate_percentage: float
    entrance_exam_type: EntranceExamType
    entrance_exam_rank: int
    preferred_branch: Branch

    @field_validator(
        "high_school_name",
        "high_school_percentage",
        "intermediate_school_name",
        "intermediate_percentage",
        "entrance_exam_type",
        "entrance_exam_rank",
        "preferred_branch",
        mode="before",
    )
    @classmethod
    def check_required(cls, value, info: ValidationInfo):
        return _reject_blank(value, info)

    @field_validator("high_school_percentage", "intermediate_percentage")
    @classmethod
    def check_percentage(cls, value: float) -> float:
        return _check_percentage(value)

    @field_validator("entrance_exam_rank")
    @classmethod
    def check_rank(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Rank must be positive")
        return value


class DocumentSlot(str, Enum):
    PHOTO = "photo"
    HIGH_SCHOOL_CERTIFICATE = "high_school_certificate"
    INTERMEDIATE_CERTIFICATE = "intermediate_certificate"
    ENTRANCE_EXAM_RESULT = "entrance_exam_result"

    @property
    def url_field(self) -> str:
        return f"{self.value}_url"

    @property
    def folder(self) -> str:
        return _SLOT_FOLDERS[self]

    @property
    def label(self) -> str:
        return _SLOT_LABELS[self]


_SLOT_FOLDERS = {
    DocumentSlot.PHOTO: "photos",
    DocumentSlot.HIGH_SCHOOL_CERTIFICATE: "high-school-certificates",
    DocumentSlot.INTERMEDIATE_CERTIFICATE: "intermediate-certificates",
    DocumentSlot.ENTRANCE_EXAM_RESULT: "entrance-exam-results",
}

_SLOT_LABELS = {
    DocumentSlot.PHOTO: "Photo",
    DocumentSlot.HIGH_SCHOOL_CERTIFICATE: "High School Certificate",
    DocumentSlot.INTERMEDIATE_CERTIFICATE: "Intermediate Certificate",
    DocumentSlot.ENTRANCE_EXAM_RESULT: "Entrance Exam Result",
}


class Documents(BaseModel):
    photo_url: str = Field(min_length=1)
    high_school_certificate_url: str = Field(min_length=1)
    intermediate_certificate_url: str = Field(min_length=1)
    entrance_exam_result_url: str = Field(min_length=1)


class _ApplicantView(BaseModel):
    uid: UUID
    email: str
    display_name: str
    role: ApplicantRole = ApplicantRole.STUDENT
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class IncompleteApplication(_ApplicantView):
    application_status: Literal["incomplete"]
    personal_info: PersonalInfo | None = None
    academic_info: AcademicInfo | None = None
    documents: Documents | None = None
    submitted_at: None = None


class SubmittedApplication(_ApplicantView):
    application_status: Literal["submitted", "under_review", "approved", "rejected"]
    personal_info: PersonalInfo
    academic_info: AcademicInfo
    documents: Documents
    submitted_at: datetime


ApplicationView = Annotated[
    Union[IncompleteApplication, SubmittedApplication],
    Field(discriminator="application_status"),
]
