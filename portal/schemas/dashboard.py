from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class DashboardOut(BaseModel):
    display_name: str
    email: str
    application_status: str
    progress: int
    has_personal_info: bool
    has_academic_info: bool
    has_documents: bool
    submitted_at: Optional[datetime] = None
    next_action: Optional[str] = None
