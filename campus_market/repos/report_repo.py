import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from models.enums import ReportStatus
from models.models import Listing, Report


class ReportRepo:
    def __init__(self, db):
        self.db = db

    async def create(
        self,
        reporter_id: uuid.UUID,
        listing_id: uuid.UUID,
        reason: str,
        description: str | None = None,
    ) -> Report:
        report = Report(
            reporter_id=reporter_id,
            listing_id=listing_id,
            reason=reason,
            description=description,
            status=ReportStatus.PENDING,
        )
        self.db.add(report)
        try:
            await self.db.commit()
            return await self.get_report_by_id(report.id)
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    def _with_relations(self):
        return select(Report).options(
            selectinload(Report.reporter),
            selectinload(Report.listing).selectinload(Listing.owner),
        )

    async def get_report_by_id(self, report_id: uuid.UUID) -> Optional[Report]:
        result = await self.db.execute(
            self._with_relations().where(Report.id == report_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_all(self, status: ReportStatus | None = None) -> List[Report]:
        stmt = self._with_relations().order_by(Report.created_at.desc())
        if status is not None:
            stmt = stmt.where(Report.status == status)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_status(
        self,
        report_id: uuid.UUID,
        status: ReportStatus,
        resolved_by: uuid.UUID | None,
        now: datetime,
        notes: str | None = None,
    ) -> bool:
        values = {
            "status": status,
            "updated_at": now,
            "resolved_at": now,
            "resolved_by": resolved_by,
        }
        if notes is not None:
            values["resolution_notes"] = notes
        stmt = (
            update(Report)
            .where(Report.id == report_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
            return bool(result.rowcount)
        except SQLAlchemyError:
            await self.db.rollback()
            raise
