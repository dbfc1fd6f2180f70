from fastapi import APIRouter, Depends

from portal.api import deps
from portal.models import ApplicantRecord
from portal.schemas.dashboard import DashboardOut
from portal.services.dashboard import build_dashboard

router = APIRouter(prefix="/me", tags=["dashboard"])


@router.get("/dashboard", response_model=DashboardOut)
async def read_dashboard(record: ApplicantRecord = Depends(deps.get_current_record)) -> DashboardOut:
    return build_dashboard(record)
