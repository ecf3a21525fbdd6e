# app/models/notification.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, Any, Optional

from app.utils.datetime_utils import DateTimeUtils

class NotificationType(Enum):
    """Notification kinds."""
    LIKE = "LIKE"
    COMMENT = "COMMENT"
    FOLLOW = "FOLLOW"
    FRIEND_REQUEST = "FRIEND_REQUEST"

@dataclass
class Notification:
    """
    Document structure of the Firestore 'notifications' collection.
    """
    notification_id: str
    recipient_id: str       # user receiving the notification
    sender: Dict[str, Any]  # public info of the user who triggered it
    type: NotificationType
    post_id: Optional[str] = None
    comment_id: Optional[str] = None
    target_summary: Optional[str] = None  # e.g. the first characters of a comment
    is_read: bool = False
    created_at: datetime = field(default_factory=DateTimeUtils.now)
