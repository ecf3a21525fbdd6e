# app/models/story.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List

from app.models.post import Author
from app.utils.datetime_utils import DateTimeUtils

class MediaType(Enum):
    """Media kinds accepted for stories and message attachments."""
    IMAGE = "image"
    VIDEO = "video"

@dataclass
class Story:
    """
    Document structure of the Firestore 'stories' collection.
    A story stays visible until expires_at.
    """
    story_id: str
    author: Author
    media_url: str
    media_type: str
    expires_at: datetime
    viewers: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=DateTimeUtils.now)
