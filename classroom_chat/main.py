from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence

from classroom_chat.config import MessagingSettings, load_settings
from classroom_chat.database.connection import close_mongo_connection, connect_to_mongo
from classroom_chat.repositories.conversation_repository import ConversationRepository
from classroom_chat.repositories.message_repository import MessageRepository
from classroom_chat.schemas.messaging import ConversationView, MessageView
from classroom_chat.services.chat_service import ChatService
from classroom_chat.services.conversation_list import ConversationListProjector
from classroom_chat.services.message_feed import MessageFeedProjector
from classroom_chat.store.base import DocumentStore
from classroom_chat.store.factory import create_store
from classroom_chat.store.subscription import Subscription
from classroom_chat.utils.logging_config import setup_logging


@dataclass
class Messaging:
    """Everything the UI layer calls, wired to one store."""

    store: DocumentStore
    chat: ChatService
    conversations: ConversationListProjector
    messages: MessageFeedProjector

    async def send_message(
        self,
        sender_id: str,
        sender_name: str,
        recipient_id: str,
        recipient_name: str,
        content: str,
        attachments: Optional[Sequence[Any]] = None,
    ) -> None:
        await self.chat.send_message(sender_id, sender_name, recipient_id, recipient_name, content, attachments)

    async def mark_read(self, user_a: str, user_b: str, reader_id: str) -> None:
        await self.chat.mark_read(user_a, user_b, reader_id)

    def subscribe_conversations(
        self,
        user_id: str,
        on_update: Callable[[List[ConversationView]], Any],
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> Subscription[List[ConversationView]]:
        return self.conversations.subscribe(user_id, on_update, on_error)

    async def subscribe_messages(
        self,
        user_a: str,
        user_b: str,
        on_update: Callable[[List[MessageView]], Any],
        on_error: Optional[Callable[[BaseException], Any]] = None,
        reader_id: Optional[str] = None,
    ) -> Subscription[List[MessageView]]:
        return await self.messages.subscribe(user_a, user_b, on_update, on_error, reader_id=reader_id)


def build_messaging(store: DocumentStore, settings: Optional[MessagingSettings] = None, strict: bool = False) -> Messaging:
    settings = settings or MessagingSettings()
    convo_repo = ConversationRepository(store, settings)
    msg_repo = MessageRepository(store, settings)
    chat = ChatService(msg_repo, convo_repo, settings)
    return Messaging(
        store=store,
        chat=chat,
        conversations=ConversationListProjector(convo_repo, settings, strict=strict),
        messages=MessageFeedProjector(msg_repo, chat, strict=strict),
    )


@asynccontextmanager
async def lifespan(settings: Optional[MessagingSettings] = None) -> AsyncIterator[Messaging]:
    settings = settings or load_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    client = await connect_to_mongo(settings) if settings.mongo_url else None
    try:
        store = await create_store(settings, client)
        try:
            yield build_messaging(store, settings)
        finally:
            await store.close()
    finally:
        if client is not None:
            await close_mongo_connection(client)
