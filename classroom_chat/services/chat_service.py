import logging
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from classroom_chat.config import MessagingSettings
from classroom_chat.errors import InvalidMessage, NotAParticipant, StoreUnavailable
from classroom_chat.repositories.conversation_repository import ConversationRepository
from classroom_chat.repositories.message_repository import MessageRepository
from classroom_chat.schemas.messaging import Attachment, validate_attachments
from classroom_chat.utils.conversation_key import conversation_key

logger = logging.getLogger(__name__)


def attachment_preview(count: int) -> str:
    return f"📎 {count} attachment" if count == 1 else f"📎 {count} attachments"


def message_preview(content: str, attachments: Sequence[Attachment]) -> str:
    if content and content.strip():
        return content
    if attachments:
        return attachment_preview(len(attachments))
    return ""


class ChatService:
    """Write side of direct messaging: sending and read bookkeeping."""

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        settings: MessagingSettings,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._settings = settings

    async def send_message(
        self,
        sender_id: str,
        sender_name: str,
        recipient_id: str,
        recipient_name: str,
        content: str,
        attachments: Optional[Sequence[Any]] = None,
    ) -> None:
        """Append a message and update the conversation summary.

        The summary is written before the message so a reader never sees a
        message whose conversation is missing. The recipient's unread counter
        goes up by one through the store's atomic increment.

        Raises:
            InvalidMessage: missing or identical ids, no text and no
                attachments, or an attachment that was not uploaded.
            StoreUnavailable: the store rejected one of the writes. If the
                summary went through and the message did not, the preview is
                ahead of the feed until the next successful send.
        """
        if not sender_id or not recipient_id:
            raise InvalidMessage("sender and recipient are required")
        if sender_id == recipient_id:
            raise InvalidMessage("cannot send a message to yourself")
        try:
            files: List[Attachment] = validate_attachments(list(attachments or []))
        except ValidationError as exc:
            raise InvalidMessage(f"invalid attachment: {exc.errors()[0]['msg']}") from exc
        content = content or ""
        if not content.strip() and not files:
            raise InvalidMessage("Message content cannot be empty")

        default_name = self._settings.default_display_name
        sender_name = sender_name or default_name
        recipient_name = recipient_name or default_name
        convo_id = conversation_key(sender_id, recipient_id)

        try:
            await self._conversation_repo.update_on_new_message(
                convo_id,
                sender_id=sender_id,
                sender_name=sender_name,
                recipient_id=recipient_id,
                recipient_name=recipient_name,
                preview=message_preview(content, files),
            )
            message_id = await self._message_repo.save_message(
                convo_id,
                sender_id=sender_id,
                sender_name=sender_name,
                content=content,
                attachments=files,
            )
        except StoreUnavailable:
            logger.exception("Sending message in conversation %s failed", convo_id)
            raise
        logger.debug("Stored message %s in conversation %s (%d attachments)", message_id, convo_id, len(files))

    async def mark_read(self, user_a: str, user_b: str, reader_id: str) -> None:
        """Reset ``reader_id``'s unread counter for the pair to zero."""
        convo_id = conversation_key(user_a, user_b)
        if reader_id not in (user_a, user_b):
            raise NotAParticipant(reader_id, convo_id)
        updated = await self._conversation_repo.reset_unread(convo_id, reader_id)
        if not updated:
            logger.debug("Conversation %s does not exist yet, nothing to mark read", convo_id)
