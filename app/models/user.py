# app/models/user.py
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from app.utils.datetime_utils import DateTimeUtils

@dataclass
class User:
    """
    Document structure of the Firestore 'users' collection.
    The *_lower fields back the case-insensitive prefix search.
    """
    user_id: str
    username: str
    name: str
    email: str
    password_hash: str
    username_lower: str = ""
    name_lower: str = ""
    bio: str = ""
    profile_picture: Optional[str] = None
    follower_count: int = 0
    following_count: int = 0
    created_at: datetime = field(default_factory=DateTimeUtils.now)
    updated_at: datetime = field(default_factory=DateTimeUtils.now)

    def __post_init__(self):
        self.username_lower = self.username.lower()
        self.name_lower = self.name.lower()


def public_user_info(user_data: Dict[str, Any]) -> Dict[str, Any]:
    """The small user summary embedded in posts, stories, notifications and lists."""
    return {
        "user_id": user_data.get("user_id"),
        "username": user_data.get("username"),
        "name": user_data.get("name"),
        "profile_picture": user_data.get("profile_picture"),
    }
