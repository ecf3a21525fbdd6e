# app/models/message.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from app.utils.datetime_utils import DateTimeUtils


def participant_key(user_a: str, user_b: str) -> str:
    """Order-independent key identifying the conversation between two users."""
    first, second = sorted([user_a, user_b])
    return f"{first}_{second}"


@dataclass
class Conversation:
    """A one-to-one conversation. Participants are kept sorted."""
    conversation_id: str
    participants: List[str]
    participant_key: str
    last_message_id: Optional[str] = None
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)


@dataclass
class Message:
    """A direct message. Either text or media_url is set."""
    message_id: str
    conversation_id: str
    sender_id: str
    recipient_id: str
    text: Optional[str] = None
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    read: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)
