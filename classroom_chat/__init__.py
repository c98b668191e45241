from classroom_chat.errors import (
    InvalidMessage,
    MalformedRecord,
    MessagingError,
    NotAParticipant,
    StoreUnavailable,
)
from classroom_chat.main import Messaging, build_messaging, lifespan
from classroom_chat.utils.conversation_key import conversation_key

__all__ = [
    "InvalidMessage",
    "MalformedRecord",
    "Messaging",
    "MessagingError",
    "NotAParticipant",
    "StoreUnavailable",
    "build_messaging",
    "conversation_key",
    "lifespan",
]
