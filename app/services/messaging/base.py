# app/services/messaging/base.py
"""
Storage interface for direct messages.

Conversations and messages are exchanged as plain dicts shaped like the
Conversation / Message dataclasses in app/models/message.py, so callers do
not care which backend is configured.
"""

from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

from app.models.message import Conversation, Message


class MessageStore(Protocol):
    """Interface implemented by every message backend."""

    def find_conversation(self, participant_key: str) -> Optional[Dict[str, Any]]:
        ...

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        ...

    def create_conversation(self, conversation: Conversation) -> Dict[str, Any]:
        """
        Store a new conversation. A pair has at most one conversation: when
        one already exists for participant_key, that one is returned.
        """
        ...

    def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        """Conversations of the user, most recently active first."""
        ...

    def add_message(self, message: Message) -> Dict[str, Any]:
        """Store the message and bump its conversation's last_message_id/updated_at."""
        ...

    def get_message(self, message_id: str) -> Optional[Dict[str, Any]]:
        ...

    def list_messages(self, conversation_id: str, offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        """One newest-first slice of a conversation plus its total message count."""
        ...

    def mark_read(self, conversation_id: str, recipient_id: str) -> List[str]:
        """Mark unread messages addressed to recipient_id as read; returns their ids."""
        ...

    def count_unread(self, recipient_id: str) -> int:
        ...

    def iter_conversations(self) -> Iterator[Dict[str, Any]]:
        ...

    def list_all_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        """Every message of a conversation, oldest first."""
        ...
