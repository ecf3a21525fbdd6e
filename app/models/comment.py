# app/models/comment.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Any

from app.utils.datetime_utils import DateTimeUtils

@dataclass
class Comment:
    """
    Document structure of the Firestore 'comments' collection.
    """
    comment_id: str
    post_id: str
    author: Dict[str, Any]  # {'user_id', 'username', 'name', 'profile_picture'}
    text: str
    created_at: datetime = field(default_factory=DateTimeUtils.now)
