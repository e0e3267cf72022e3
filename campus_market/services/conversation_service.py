import logging
import uuid
from typing import List, Tuple

from core.breaker import CircuitBreaker
from core.mapper import ORMMapper
from core.results import ConversationResult, ServiceResult
from models.models import Conversation, User
from repos.conversation_repo import ConversationRepo
from repos.listing_repo import ListingRepo
from schemas.schema import ConversationSummaryOut, PublicUserOut, UnreadCountOut

logger = logging.getLogger(__name__)

RESOLVE_FAILED = "Failed to resolve conversation"


def canonical_participants(
    user_a: uuid.UUID, user_b: uuid.UUID
) -> Tuple[uuid.UUID, uuid.UUID]:
    """Smaller id first, compared as lowercase strings to match the store's uuid order."""
    if str(user_a) <= str(user_b):
        return user_a, user_b
    return user_b, user_a


def participant_slot(conversation: Conversation, user_id: uuid.UUID) -> int:
    if conversation.participant_1_id == user_id:
        return 1
    if conversation.participant_2_id == user_id:
        return 2
    raise ValueError(f"{user_id} is not a participant of {conversation.id}")


def is_participant(conversation: Conversation, user_id: uuid.UUID) -> bool:
    return user_id in (conversation.participant_1_id, conversation.participant_2_id)


class ConversationResolver:
    def __init__(self, db, repo: ConversationRepo | None = None):
        self.db = db
        self.convos: ConversationRepo = repo or ConversationRepo(db)

    async def get_or_create_conversation(
        self,
        current_user_id: uuid.UUID,
        other_user_id: uuid.UUID,
        listing_id: uuid.UUID,
    ) -> ConversationResult:
        participant_1, participant_2 = canonical_participants(
            current_user_id, other_user_id
        )
        try:
            convo = await self.convos.get_or_create(
                listing_id, participant_1, participant_2
            )
        except Exception as e:
            logger.error(
                f"Conversation resolve failed for listing {listing_id} "
                f"({participant_1}, {participant_2}): {e}"
            )
            return ConversationResult(error=RESOLVE_FAILED)
        return ConversationResult(conversation_id=convo.id)


class ConversationService:
    def __init__(self, db):
        self.db = db
        self.breaker: CircuitBreaker = CircuitBreaker(name="conversations")
        self.convos: ConversationRepo = ConversationRepo(db)
        self.listings: ListingRepo = ListingRepo(db)
        self.resolver: ConversationResolver = ConversationResolver(db, self.convos)
        self.mapper: ORMMapper = ORMMapper()

    async def start_conversation(
        self, current_user: User, listing_id: uuid.UUID, other_user_id: uuid.UUID
    ) -> ServiceResult:
        if current_user.id == other_user_id:
            return ServiceResult.failure("You cannot message yourself", 400)
        try:
            listing_exists = await self.listings.exists(listing_id)
        except Exception as e:
            logger.error(f"Listing lookup failed for {listing_id}: {e}")
            return ServiceResult.failure(RESOLVE_FAILED, 500)
        if not listing_exists:
            return ServiceResult.failure("Listing not found", 404)
        result = await self.resolver.get_or_create_conversation(
            current_user.id, other_user_id, listing_id
        )
        if not result.ok:
            return ServiceResult.failure(result.error, 500)
        try:
            await self.db.commit()
        except Exception as e:
            logger.error(f"Commit failed for conversation {result.conversation_id}: {e}")
            await self.db.rollback()
            return ServiceResult.failure(RESOLVE_FAILED, 500)
        return ServiceResult.success({"conversation_id": result.conversation_id})

    def _summary(self, convo: Conversation, user_id: uuid.UUID) -> ConversationSummaryOut:
        slot = participant_slot(convo, user_id)
        other = convo.participant_2 if slot == 1 else convo.participant_1
        unread = (
            convo.participant_1_unread_count
            if slot == 1
            else convo.participant_2_unread_count
        )
        last = convo.last_message
        listing = convo.listing
        return ConversationSummaryOut(
            id=convo.id,
            listing_id=convo.listing_id,
            listing_title=listing.title if listing else None,
            listing_image=(listing.image_urls or [None])[0] if listing else None,
            other_user=self.mapper.optional(other, PublicUserOut),
            last_message=None if last is None or last.deleted else last.body,
            last_message_time=convo.last_message_at,
            unread_count=unread,
        )

    async def list_conversations(self, current_user: User) -> ServiceResult:
        async def handler():
            convos = await self.convos.list_for_user(current_user.id)
            return [self._summary(c, current_user.id) for c in convos]

        try:
            items: List[ConversationSummaryOut] = await self.breaker.call(handler)
        except Exception as e:
            logger.error(f"Listing conversations failed for {current_user.id}: {e}")
            return ServiceResult.failure("Failed to load conversations", 500)
        return ServiceResult.success(items)

    async def total_unread(self, current_user: User) -> ServiceResult:
        try:
            count = await self.convos.total_unread(current_user.id)
        except Exception as e:
            logger.error(f"Unread count failed for {current_user.id}: {e}")
            return ServiceResult.failure("Failed to load unread count", 500)
        return ServiceResult.success(UnreadCountOut(count=count))
