import logging

from fastapi import HTTPException

from core.breaker import breaker
from core.mapper import ORMMapper
from fire_and_forget.reports import AsyncioReport
from models.models import User
from repos.conversation_repo import ConversationRepo
from repos.listing_repo import ListingRepo
from repos.report_repo import ReportRepo
from schemas.schema import ConversationReportIn, ReportCreateIn, ReportOut
from services.conversation_service import canonical_participants

logger = logging.getLogger(__name__)

CHAT_REPORT_PREFIX = "Chat Report: "


class ReportService:
    def __init__(self, db):
        self.repo: ReportRepo = ReportRepo(db)
        self.listing_repo: ListingRepo = ListingRepo(db)
        self.convos: ConversationRepo = ConversationRepo(db)
        self.mapper: ORMMapper = ORMMapper()
        self.fire_and_forget: AsyncioReport = AsyncioReport()

    async def _create(self, current_user: User, listing_id, reason: str, description=None):
        report = await self.repo.create(
            reporter_id=current_user.id,
            listing_id=listing_id,
            reason=reason,
            description=description,
        )
        logger.info(f"Report {report.id} filed by {current_user.id} on listing {listing_id}")
        self.fire_and_forget.report_created(report)
        return self.mapper.one(report, ReportOut)

    async def report_listing(self, current_user: User, data: ReportCreateIn) -> ReportOut:
        async def handler():
            if not await self.listing_repo.exists(data.listing_id):
                raise HTTPException(status_code=404, detail="Listing not found")
            return await self._create(
                current_user, data.listing_id, data.reason, data.description
            )

        return await breaker.call(handler)

    async def report_conversation(
        self, current_user: User, data: ConversationReportIn
    ) -> ReportOut:
        async def handler():
            participant_1, participant_2 = canonical_participants(
                current_user.id, data.other_user_id
            )
            convo = await self.convos.get_by_participants(
                data.listing_id, participant_1, participant_2
            )
            if not convo:
                raise HTTPException(status_code=404, detail="Conversation not found")
            return await self._create(
                current_user,
                data.listing_id,
                f"{CHAT_REPORT_PREFIX}{data.reason}",
                data.description,
            )

        return await breaker.call(handler)
