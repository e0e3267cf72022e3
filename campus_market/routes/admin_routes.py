import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.check_permission import AdminIdentity, require_admin
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.enums import ReportStatus
from schemas.schema import ReportOut, ReportStatusUpdateIn
from services.admin_report_service import AdminReportService

router = APIRouter(tags=["Admin"])


@cbv(router)
class AdminRoutes:
    admin: AdminIdentity = Depends(require_admin)

    @router.get("/reports", response_model=List[ReportOut])
    @safe_handler
    async def list_reports(
        self,
        status: Optional[ReportStatus] = None,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AdminReportService(db).list(status)

    @router.get("/reports/{report_id}", response_model=ReportOut)
    @safe_handler
    async def get_report(
        self,
        report_id: uuid.UUID,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AdminReportService(db).get(report_id)

    @router.patch("/reports/{report_id}", dependencies=[rate_limit])
    @safe_handler
    async def update_report(
        self,
        report_id: uuid.UUID,
        data: ReportStatusUpdateIn,
        db: AsyncSession = Depends(get_db_async),
    ):
        return await AdminReportService(db).update_status(self.admin, report_id, data)

    @router.get("/export-reports")
    @safe_handler
    async def export_reports(self, db: AsyncSession = Depends(get_db_async)):
        return await AdminReportService(db).export_csv()
