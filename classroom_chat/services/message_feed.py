import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from classroom_chat.errors import MalformedRecord
from classroom_chat.repositories.message_repository import MessageRepository
from classroom_chat.schemas.messaging import MessageView, decode_message, to_timestamp
from classroom_chat.services.chat_service import ChatService
from classroom_chat.store.base import DocumentSnapshot
from classroom_chat.store.subscription import Subscription
from classroom_chat.utils.conversation_key import conversation_key

logger = logging.getLogger(__name__)


class MessageFeedProjector:
    """Live, oldest-first message history of one conversation.

    Messages whose server timestamp has not come back yet carry a
    ``PendingTimestamp`` and are listed after the resolved ones; the next
    snapshot replaces it with a ``ResolvedTimestamp``.
    """

    def __init__(self, message_repo: MessageRepository, chat_service: ChatService, strict: bool = False) -> None:
        self._message_repo = message_repo
        self._chat_service = chat_service
        self._strict = strict

    def project(self, conversation_id: str, snapshots: List[DocumentSnapshot]) -> List[MessageView]:
        now = datetime.now(timezone.utc)
        collection = self._message_repo.collection(conversation_id)
        views: List[MessageView] = []
        for snapshot in snapshots:
            try:
                record = decode_message(snapshot, collection)
            except MalformedRecord:
                if self._strict:
                    raise
                logger.warning("Skipping malformed message %s in %s", snapshot.id, conversation_id, exc_info=True)
                continue
            views.append(
                MessageView(
                    id=record.id,
                    sender_id=record.sender_id,
                    sender_name=record.sender_name,
                    content=record.content,
                    attachments=record.attachments,
                    created_at=to_timestamp(record.created_at, now),
                    read=record.read,
                )
            )
        return views

    def watch(self, user_a: str, user_b: str) -> Subscription[List[MessageView]]:
        convo_id = conversation_key(user_a, user_b)
        return self._message_repo.watch_conversation(convo_id).map(lambda snapshots: self.project(convo_id, snapshots))

    async def subscribe(
        self,
        user_a: str,
        user_b: str,
        on_update: Callable[[List[MessageView]], Any],
        on_error: Optional[Callable[[BaseException], Any]] = None,
        reader_id: Optional[str] = None,
    ) -> Subscription[List[MessageView]]:
        """Open the feed and, when ``reader_id`` is given, mark it read for them."""
        subscription = self.watch(user_a, user_b).listen(on_update, on_error)
        if reader_id is not None:
            try:
                await self._chat_service.mark_read(user_a, user_b, reader_id)
            except Exception:
                subscription.cancel()
                raise
        return subscription
