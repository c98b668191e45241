from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from classroom_chat.errors import MalformedRecord
from classroom_chat.store.base import DocumentSnapshot

# schemes a picker or camera hands out before the file is uploaded
LOCAL_URL_SCHEMES = frozenset({"file", "content", "blob", "data", "ph", "assets-library"})


class AttachmentKind(str, Enum):
    IMAGE = "image"
    FILE = "file"


class Attachment(BaseModel):

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    type: AttachmentKind = AttachmentKind.FILE
    size: int = Field(0, ge=0)

    @field_validator("url")
    @classmethod
    def url_must_be_durable(cls, value: str) -> str:
        scheme = urlsplit(value).scheme.lower()
        if not scheme:
            raise ValueError("attachment url has no scheme")
        if scheme in LOCAL_URL_SCHEMES:
            raise ValueError(f"attachment url points to a local file ({scheme}:)")
        return value


class PendingTimestamp(BaseModel):
    """Server time not known yet; ``local_time`` is the client's estimate."""

    model_config = ConfigDict(frozen=True)

    state: Literal["pending"] = "pending"
    local_time: datetime

    @property
    def resolved(self) -> bool:
        return False

    @property
    def value(self) -> datetime:
        return self.local_time


class ResolvedTimestamp(BaseModel):

    model_config = ConfigDict(frozen=True)

    state: Literal["resolved"] = "resolved"
    server_time: datetime

    @property
    def resolved(self) -> bool:
        return True

    @property
    def value(self) -> datetime:
        return self.server_time


Timestamp = Annotated[Union[PendingTimestamp, ResolvedTimestamp], Field(discriminator="state")]


def to_timestamp(value: Optional[datetime], now: Optional[datetime] = None) -> Union[PendingTimestamp, ResolvedTimestamp]:
    if value is None:
        return PendingTimestamp(local_time=now or datetime.now(timezone.utc))
    return ResolvedTimestamp(server_time=value)


class ConversationRecord(BaseModel):

    model_config = ConfigDict(extra="ignore")

    id: str
    participants: List[str]
    participant_names: Dict[str, str] = Field(default_factory=dict)
    last_message: str = ""
    updated_at: Optional[datetime] = None
    unread_counts: Dict[str, int] = Field(default_factory=dict)

    @field_validator("participant_names", "unread_counts", mode="before")
    @classmethod
    def none_as_empty_map(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("last_message", mode="before")
    @classmethod
    def none_as_empty_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("participants")
    @classmethod
    def exactly_two_participants(cls, value: List[str]) -> List[str]:
        if len(value) != 2 or len(set(value)) != 2 or not all(value):
            raise ValueError("a conversation has exactly two distinct participants")
        return value

    def other_participant(self, user_id: str) -> str:
        return next(p for p in self.participants if p != user_id)


class MessageRecord(BaseModel):

    model_config = ConfigDict(extra="ignore")

    id: str
    sender_id: str = Field(min_length=1)
    sender_name: str = ""
    content: str = ""
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    read: bool = False

    @field_validator("content", "sender_name", mode="before")
    @classmethod
    def none_as_empty_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("attachments", mode="before")
    @classmethod
    def none_as_no_attachments(cls, value: Any) -> Any:
        return [] if value is None else value

    @model_validator(mode="after")
    def has_body(self) -> "MessageRecord":
        if not self.content.strip() and not self.attachments:
            raise ValueError("message has neither text nor attachments")
        return self


class ConversationView(BaseModel):

    id: str
    participant_id: str
    participant_name: str
    last_message: str
    last_message_time: Timestamp
    unread_count: int = 0


class MessageView(BaseModel):

    id: str
    sender_id: str
    sender_name: str
    content: str
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: Timestamp
    read: bool = False


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc']) or 'document'}: {error['msg']}"
        for error in exc.errors()
    )


def decode_conversation(snapshot: DocumentSnapshot, collection: str = "chats") -> ConversationRecord:
    try:
        return ConversationRecord.model_validate({**snapshot.data, "id": snapshot.id})
    except ValidationError as exc:
        raise MalformedRecord(collection, snapshot.id, _describe(exc)) from exc


def decode_message(snapshot: DocumentSnapshot, collection: str = "messages") -> MessageRecord:
    try:
        return MessageRecord.model_validate({**snapshot.data, "id": snapshot.id})
    except ValidationError as exc:
        raise MalformedRecord(collection, snapshot.id, _describe(exc)) from exc


def validate_attachments(attachments: Optional[List[Any]]) -> List[Attachment]:
    """Raises ``ValidationError`` for anything that is not a durable attachment."""
    return [a if isinstance(a, Attachment) else Attachment.model_validate(a) for a in attachments or []]
