import logging
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.common.exceptions import BadRequestError, NotFoundError
from app.reports.models import Report, ReportStatus
from app.reports.schemas import ReportCreate, ReportUpdate
from app.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)


class ReportService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================
    # FILING
    # ===========================
    async def create_report(self, reporter: User, data: ReportCreate) -> Report:
        if data.reported_user_id == reporter.id:
            raise BadRequestError("You cannot report yourself")
        if not await self.db.get(User, data.reported_user_id):
            raise NotFoundError("User not found")

        existing = await self.db.execute(
            select(Report.id).where(
                Report.reporter_id == reporter.id,
                Report.reported_user_id == data.reported_user_id,
                Report.status == ReportStatus.PENDING.value,
            )
        )
        if existing.first() is not None:
            raise BadRequestError("You have already reported this user")

        report = Report(
            reporter_id=reporter.id,
            reported_user_id=data.reported_user_id,
            type=data.type.value,
            description=data.description,
            status=ReportStatus.PENDING.value,
        )
        self.db.add(report)
        await self.db.commit()
        logger.info(f"Report filed: id={report.id}, reporter={reporter.id}, reported={data.reported_user_id}")
        return await self.get_report(report.id)

    async def list_my_reports(self, reporter_id) -> List[Report]:
        result = await self.db.execute(
            select(Report).where(Report.reporter_id == reporter_id).order_by(Report.created_at.desc())
        )
        return list(result.scalars().all())

    # ===========================
    # MODERATION
    # ===========================
    async def get_report(self, report_id) -> Report:
        result = await self.db.execute(
            select(Report).where(Report.id == report_id).execution_options(populate_existing=True)
        )
        report = result.scalars().first()
        if not report:
            raise NotFoundError("Report not found")
        return report

    async def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        email: Optional[str] = None,
        page: int = 1,
        page_size: int = 15,
    ) -> dict:
        query = select(Report)
        if status is not None:
            query = query.where(Report.status == status.value)

        if email and email.strip():
            reported = await self.db.execute(select(User.id).where(User.email == email.strip().lower()))
            reported_id = reported.scalar_one_or_none()
            if reported_id is None:
                return {"data": [], "total": 0, "page": page, "page_size": page_size, "total_pages": 0}
            query = query.where(Report.reported_user_id == reported_id)

        count_query = query.with_only_columns(func.count(Report.id)).order_by(None)
        total = (await self.db.execute(count_query)).scalar_one()

        query = query.order_by(Report.created_at.desc()).offset((page - 1) * page_size).limit(page_size)
        reports = (await self.db.execute(query)).scalars().all()

        return {
            "data": reports,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": (total + page_size - 1) // page_size,
        }

    async def update_report(self, report_id, reviewer: User, data: ReportUpdate) -> Report:
        report = await self.get_report(report_id)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("status") is not None:
            report.status = changes["status"].value
            report.reviewed_by = reviewer.id
            report.reviewed_at = utcnow()
        if "admin_notes" in changes:
            report.admin_notes = changes["admin_notes"]

        await self.db.commit()
        logger.info(f"Report {report.id} updated by {reviewer.id}: status={report.status}")
        return await self.get_report(report.id)

    async def delete_report(self, report_id) -> None:
        report = await self.get_report(report_id)
        await self.db.delete(report)
        await self.db.commit()
        logger.info(f"Report deleted: id={report_id}")
