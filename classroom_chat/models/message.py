from datetime import datetime
from typing import List, Literal, Optional, TypedDict


AttachmentType = Literal["image", "file"]


class AttachmentDocument(TypedDict):
    name: str
    url: str
    type: AttachmentType
    size: int


class MessageDocument(TypedDict, total=False):
    sender_id: str
    sender_name: str
    content: str
    # only present when the message carries files
    attachments: List[AttachmentDocument]
    created_at: Optional[datetime]
    read: bool
