class MessagingError(Exception):
    """Base class for every error raised by the messaging core."""


class InvalidMessage(MessagingError, ValueError):
    """A send was rejected before any store call was made."""


class NotAParticipant(MessagingError, ValueError):
    """A user tried to act on a conversation they are not part of."""

    def __init__(self, user_id: str, conversation_id: str) -> None:
        super().__init__(f"{user_id!r} is not a participant of conversation {conversation_id!r}")
        self.user_id = user_id
        self.conversation_id = conversation_id


class StoreUnavailable(MessagingError):
    """The document store failed or timed out. Never retried by this package."""


class MalformedRecord(MessagingError, ValueError):
    """A stored document does not match its schema."""

    def __init__(self, collection: str, document_id: str, reason: str) -> None:
        super().__init__(f"malformed document {collection}/{document_id}: {reason}")
        self.collection = collection
        self.document_id = document_id
