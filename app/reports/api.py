from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.auth.permissions import Permission, require_permission
from app.db.session import get_db
from app.reports.models import ReportStatus
from app.reports.schemas import ReportCreate, ReportListResponse, ReportResponse, ReportUpdate
from app.reports.services import ReportService

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post("", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def create_report(
    data: ReportCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService(db).create_report(current_user, data)


@router.get("", response_model=ReportListResponse)
async def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    email: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(15, ge=1, le=100, alias="pageSize"),
    _: User = Depends(require_permission(Permission.REPORTS_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService(db).list_reports(status=status_filter, email=email, page=page, page_size=page_size)


@router.get("/my-reports", response_model=List[ReportResponse])
async def list_my_reports(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService(db).list_my_reports(current_user.id)


@router.get("/{report_id}", response_model=ReportResponse)
async def get_report(
    report_id: UUID,
    _: User = Depends(require_permission(Permission.REPORTS_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService(db).get_report(report_id)


@router.patch("/{report_id}", response_model=ReportResponse)
async def update_report(
    report_id: UUID,
    data: ReportUpdate,
    reviewer: User = Depends(require_permission(Permission.REPORTS_UPDATE)),
    db: AsyncSession = Depends(get_db),
):
    return await ReportService(db).update_report(report_id, reviewer, data)


@router.delete("/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_report(
    report_id: UUID,
    _: User = Depends(require_permission(Permission.REPORTS_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    await ReportService(db).delete_report(report_id)
