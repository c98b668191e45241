from typing import List

from classroom_chat.config import MessagingSettings
from classroom_chat.models.message import MessageDocument
from classroom_chat.schemas.messaging import Attachment
from classroom_chat.store.base import DocumentSnapshot, DocumentStore, Query
from classroom_chat.store.subscription import Subscription


class MessageRepository:

    def __init__(self, store: DocumentStore, settings: MessagingSettings) -> None:
        self._store = store
        self._settings = settings

    def collection(self, conversation_id: str) -> str:
        return self._settings.messages_collection(conversation_id)

    async def save_message(
        self,
        conversation_id: str,
        sender_id: str,
        sender_name: str,
        content: str,
        attachments: List[Attachment],
    ) -> str:
        doc: MessageDocument = {
            "sender_id": sender_id,
            "sender_name": sender_name,
            "content": content,
            "created_at": self._store.server_timestamp(),
            "read": False,
        }
        if attachments:
            doc["attachments"] = [a.model_dump(mode="json") for a in attachments]
        return await self._store.add_record(self.collection(conversation_id), doc)

    def watch_conversation(self, conversation_id: str) -> Subscription[List[DocumentSnapshot]]:
        return self._store.subscribe_query(
            self.collection(conversation_id),
            Query(order_by="created_at"),
        )
