from typing import Any, Dict, List

from classroom_chat.config import MessagingSettings
from classroom_chat.store.base import DocumentSnapshot, DocumentStore, Filter, Query
from classroom_chat.store.subscription import Subscription
from classroom_chat.utils.conversation_key import conversation_participants


class ConversationRepository:

    def __init__(self, store: DocumentStore, settings: MessagingSettings) -> None:
        self._store = store
        self._settings = settings

    @property
    def collection(self) -> str:
        return self._settings.conversations_collection

    async def update_on_new_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        recipient_id: str,
        recipient_name: str,
        preview: str,
    ) -> None:
        fields: Dict[str, Any] = {
            "participants": conversation_participants(sender_id, recipient_id),
            f"participant_names.{sender_id}": sender_name,
            f"participant_names.{recipient_id}": recipient_name,
            "last_message": preview,
            "updated_at": self._store.server_timestamp(),
            f"unread_counts.{recipient_id}": self._store.increment(1),
        }
        await self._store.upsert_merge(self.collection, conversation_id, fields)

    async def reset_unread(self, conversation_id: str, user_id: str) -> bool:
        return await self._store.update_fields(
            self.collection,
            conversation_id,
            {f"unread_counts.{user_id}": 0},
        )

    def watch_for_user(self, user_id: str) -> Subscription[List[DocumentSnapshot]]:
        query = Query(
            filters=[Filter("participants", "array_contains", user_id)],
            order_by="updated_at",
            descending=True,
        )
        return self._store.subscribe_query(self.collection, query)
