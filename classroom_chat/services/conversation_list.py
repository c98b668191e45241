import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from classroom_chat.config import MessagingSettings
from classroom_chat.errors import MalformedRecord
from classroom_chat.repositories.conversation_repository import ConversationRepository
from classroom_chat.schemas.messaging import ConversationView, decode_conversation, to_timestamp
from classroom_chat.store.base import DocumentSnapshot
from classroom_chat.store.subscription import Subscription

logger = logging.getLogger(__name__)


class ConversationListProjector:
    """Live inbox of one user, most recent conversation first."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        settings: MessagingSettings,
        strict: bool = False,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._settings = settings
        self._strict = strict

    def project(self, user_id: str, snapshots: List[DocumentSnapshot]) -> List[ConversationView]:
        now = datetime.now(timezone.utc)
        views: List[ConversationView] = []
        for snapshot in snapshots:
            try:
                record = decode_conversation(snapshot, self._conversation_repo.collection)
            except MalformedRecord:
                if self._strict:
                    raise
                logger.warning("Skipping malformed conversation %s", snapshot.id, exc_info=True)
                continue
            if user_id not in record.participants:
                continue
            other_id = record.other_participant(user_id)
            views.append(
                ConversationView(
                    id=record.id,
                    participant_id=other_id,
                    participant_name=record.participant_names.get(other_id) or self._settings.default_display_name,
                    last_message=record.last_message,
                    last_message_time=to_timestamp(record.updated_at, now),
                    unread_count=record.unread_counts.get(user_id, 0),
                )
            )
        return views

    def watch(self, user_id: str) -> Subscription[List[ConversationView]]:
        return self._conversation_repo.watch_for_user(user_id).map(lambda snapshots: self.project(user_id, snapshots))

    def subscribe(
        self,
        user_id: str,
        on_update: Callable[[List[ConversationView]], Any],
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> Subscription[List[ConversationView]]:
        """Push every new projection to ``on_update``; cancel the result to stop."""
        return self.watch(user_id).listen(on_update, on_error)
