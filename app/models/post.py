# app/models/post.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List

from app.utils.datetime_utils import DateTimeUtils

@dataclass
class Author:
    """Author snapshot stored inside post, comment and story documents."""
    user_id: str
    username: str
    name: str
    profile_picture: Optional[str] = None

@dataclass
class Post:
    """
    Document structure of the Firestore 'posts' collection.
    """
    post_id: str
    author: Author
    description: str
    image_urls: List[str]
    mood: Optional[str] = None
    like_count: int = 0
    comment_count: int = 0
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)
