from typing import Optional

from pydantic import BaseModel, Field

from classroom_chat.utils.env_helper import env_bool, env_int, env_none_or_str


class MessagingSettings(BaseModel):
    mongo_url: Optional[str] = Field(None, description="MongoDB URL, unset selects the in-memory store")
    mongo_db_name: str = Field("classroom", description="Database holding the chat collections")
    mongo_timeout_ms: int = Field(5000, ge=1, description="Server selection timeout in milliseconds")
    conversations_collection: str = Field("chats", min_length=1)
    messages_subcollection: str = Field("messages", min_length=1)
    default_display_name: str = Field("User", min_length=1, description="Shown when a participant has no name")
    log_level: str = Field("INFO")
    log_json: bool = Field(False)

    def messages_collection(self, conversation_id: str) -> str:
        return f"{self.conversations_collection}/{conversation_id}/{self.messages_subcollection}"


def load_settings() -> MessagingSettings:
    return MessagingSettings(
        mongo_url=env_none_or_str("MONGO_URL"),
        mongo_db_name=env_none_or_str("MONGO_DB_NAME", "classroom"),
        mongo_timeout_ms=env_int("MONGO_TIMEOUT_MS", 5000),
        conversations_collection=env_none_or_str("CHAT_COLLECTION", "chats"),
        messages_subcollection=env_none_or_str("CHAT_MESSAGES_SUBCOLLECTION", "messages"),
        default_display_name=env_none_or_str("CHAT_DEFAULT_DISPLAY_NAME", "User"),
        log_level=env_none_or_str("LOG_LEVEL", "INFO"),
        log_json=env_bool("LOG_JSON"),
    )
