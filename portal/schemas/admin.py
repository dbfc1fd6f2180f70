from datetime import datetime
from enum import Enum
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from portal.schemas.application import ApplicationStatus


class ReviewSort(str, Enum):
    DATE = "date"
    NAME = "name"
    STATUS = "status"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ReviewQuery(BaseModel):
    search: str = ""
    status: Optional[ApplicationStatus] = None
    branch: Optional[str] = None
    sort_by: ReviewSort = ReviewSort.DATE
    sort_direction: SortDirection = SortDirection.DESC


class ApplicationSummary(BaseModel):
    uid: UUID
    full_name: str
    email: str
    phone: str
    preferred_branch: str
    entrance_exam_type: str
    entrance_exam_rank: int
    high_school_percentage: float
    intermediate_percentage: float
    application_status: str
    submitted_at: datetime
    documents: dict[str, str]
    allowed_transitions: list[str] = Field(default_factory=list)


class ApplicationListResponse(BaseModel):
    items: list[ApplicationSummary]
    total: int
    branches: list[str]
    status_counts: dict[str, int] = Field(default_factory=dict)
    skipped: int = 0


class StatusUpdateRequest(BaseModel):
    status: Literal["under_review", "approved", "rejected"]
