from fastapi import APIRouter, Depends
from fastapi_utils.cbv import cbv
from sqlalchemy.ext.asyncio import AsyncSession

from core.get_current_user import get_current_user
from core.get_db import get_db_async
from core.safe_handler import safe_handler
from core.throttling import rate_limit
from models.models import User
from schemas.schema import ConversationReportIn, ReportCreateIn, ReportOut
from services.report_service import ReportService

router = APIRouter(tags=["Reports"])


@cbv(router)
class ReportRoutes:
    @router.post(
        "/reports", dependencies=[rate_limit], response_model=ReportOut, status_code=201
    )
    @safe_handler
    async def report_listing(
        self,
        data: ReportCreateIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ReportService(db).report_listing(current_user, data)

    @router.post(
        "/reports/conversation",
        dependencies=[rate_limit],
        response_model=ReportOut,
        status_code=201,
    )
    @safe_handler
    async def report_conversation(
        self,
        data: ConversationReportIn,
        current_user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db_async),
    ):
        return await ReportService(db).report_conversation(current_user, data)
