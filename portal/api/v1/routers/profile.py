from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api import deps
from portal.db.session import get_db
from portal.models import ApplicantRecord
from portal.schemas.profile import ProfileOut, ProfileUpdate
from portal.services import records

router = APIRouter(prefix="/me", tags=["profile"])


@router.get("/profile", response_model=ProfileOut)
async def read_profile(record: ApplicantRecord = Depends(deps.get_current_record)) -> ProfileOut:
    return ProfileOut.model_validate(record)


@router.patch("/profile", response_model=ProfileOut)
async def update_profile(
    payload: ProfileUpdate,
    record: ApplicantRecord = Depends(deps.get_current_record),
    db: AsyncSession = Depends(get_db),
) -> ProfileOut:
    updates = payload.model_dump(exclude_unset=True)
    if updates.get("display_name") is None:
        updates.pop("display_name", None)
    if updates:
        record = await records.update_record(db, record, updates)
    return ProfileOut.model_validate(record)
