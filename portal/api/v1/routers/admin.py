from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from portal.api import deps
from portal.db.session import get_db
from portal.schemas.admin import (
    ApplicationListResponse,
    ApplicationSummary,
    ReviewQuery,
    ReviewSort,
    SortDirection,
    StatusUpdateRequest,
)
from portal.schemas.application import ApplicationStatus
from portal.services import admin_review

router = APIRouter(prefix="/admin/applications", tags=["admin"])


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    search: str = Query(default="", max_length=200),
    status: Optional[ApplicationStatus] = Query(default=None),
    branch: Optional[str] = Query(default=None),
    sort_by: ReviewSort = Query(default=ReviewSort.DATE),
    sort_direction: SortDirection = Query(default=SortDirection.DESC),
    _: deps.SessionContext = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> ApplicationListResponse:
    query = ReviewQuery(
        search=search,
        status=status,
        branch=branch,
        sort_by=sort_by,
        sort_direction=sort_direction,
    )
    return await admin_review.list_applications(db, query)


@router.patch("/{uid}/status", response_model=ApplicationSummary)
async def update_status(
    uid: UUID,
    payload: StatusUpdateRequest,
    ctx: deps.SessionContext = Depends(deps.require_admin),
    db: AsyncSession = Depends(get_db),
) -> ApplicationSummary:
    return await admin_review.transition_status(db, uid, payload.status, actor_id=ctx.uid)
