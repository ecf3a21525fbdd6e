# app/models/relationship.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.utils.datetime_utils import DateTimeUtils

class Predicate(Enum):
    """Edge kinds of the relationship graph."""
    FOLLOWS = "follows"
    FRIEND_REQUEST = "friend_request"
    BLOCKS = "blocks"

@dataclass
class Relationship:
    """
    One directed edge in the 'relationships' collection:
    (subject_id) --predicate--> (object_id).
    """
    subject_id: str
    predicate: str
    object_id: str
    created_at: datetime = field(default_factory=DateTimeUtils.now)


def relationship_id(subject_id: str, predicate: Predicate, object_id: str) -> str:
    """Deterministic document id, so a membership test is a single read."""
    return f"{subject_id}_{predicate.value}_{object_id}"
