# app/api/chat/services.py
import logging
import math
import uuid
from firebase_admin import firestore
from typing import Optional, Dict, Any, List

from app.models.message import Conversation, Message, participant_key
from app.models.story import MediaType
from app.models.user import public_user_info
from app.services.messaging.base import MessageStore


class ChatService:
    """
    Direct messaging between two users.
    Storage goes through a MessageStore, so the same logic serves the
    Firestore and the SQL backend.
    """
    def __init__(self, store: MessageStore, db=None, relationship_service=None):
        self.store = store
        self.db = db or firestore.client()
        self.users_ref = self.db.collection('users')
        self.relationship_service = relationship_service

    def _check_counterpart(self, user_id: str, other_id: str) -> None:
        if not other_id:
            raise ValueError("A recipient is required.")
        if user_id == other_id:
            raise ValueError("You cannot message yourself.")
        if not self.users_ref.document(other_id).get().exists:
            raise LookupError("User not found.")
        if self.relationship_service and self.relationship_service.is_blocked_between(user_id, other_id):
            raise PermissionError("You cannot message this user.")

    def _users_by_id(self, user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        if not user_ids:
            return {}
        docs = self.db.get_all([self.users_ref.document(uid) for uid in set(user_ids)])
        return {doc.id: public_user_info(doc.to_dict()) for doc in docs if doc.exists}

    def _get_or_create(self, user_id: str, other_id: str) -> Dict[str, Any]:
        key = participant_key(user_id, other_id)
        conversation = self.store.find_conversation(key)
        if conversation:
            return conversation
        new_conversation = Conversation(
            conversation_id=str(uuid.uuid4()),
            participants=sorted([user_id, other_id]),
            participant_key=key,
        )
        conversation = self.store.create_conversation(new_conversation)
        if conversation['conversation_id'] == new_conversation.conversation_id:
            logging.info(f"Conversation created: {new_conversation.conversation_id} ({key})")
        return conversation

    def get_or_create_conversation(self, user_id: str, other_id: str) -> Dict[str, Any]:
        self._check_counterpart(user_id, other_id)
        conversation = self._get_or_create(user_id, other_id)
        return self._populate([conversation])[0]

    def _populate(self, conversations: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Replace participant ids with public user info and embed the last message."""
        users = self._users_by_id([uid for c in conversations for uid in c['participants']])
        populated = []
        for conversation in conversations:
            item = dict(conversation)
            item['participants'] = [
                users.get(uid, {"user_id": uid, "username": None, "name": None, "profile_picture": None})
                for uid in conversation['participants']
            ]
            last_message_id = conversation.get('last_message_id')
            item['last_message'] = self.store.get_message(last_message_id) if last_message_id else None
            populated.append(item)
        return populated

    def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        return self._populate(self.store.list_conversations(user_id))

    def send_message(self, sender_id: str, recipient_id: str, text: Optional[str] = None,
                     media_url: Optional[str] = None, media_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Store a message, creating the conversation on first contact.

        :raises ValueError: no content, or messaging yourself
        :raises LookupError: unknown recipient
        :raises PermissionError: a block stands between the users
        """
        text = (text or '').strip() or None
        if not text and not media_url:
            raise ValueError("A message needs text or media.")
        if media_url:
            media_type = MediaType(media_type or MediaType.IMAGE.value).value
        else:
            media_type = None

        self._check_counterpart(sender_id, recipient_id)
        conversation = self._get_or_create(sender_id, recipient_id)

        message = Message(
            message_id=str(uuid.uuid4()),
            conversation_id=conversation['conversation_id'],
            sender_id=sender_id,
            recipient_id=recipient_id,
            text=text,
            media_url=media_url,
            media_type=media_type,
        )
        stored = self.store.add_message(message)
        logging.info(f"Message sent: {message.message_id} in {message.conversation_id}")
        return stored

    def _require_participant(self, user_id: str, conversation_id: str) -> Dict[str, Any]:
        conversation = self.store.get_conversation(conversation_id)
        if not conversation or user_id not in conversation['participants']:
            raise LookupError("Conversation not found.")
        return conversation

    def is_participant(self, user_id: Optional[str], conversation_id: str) -> bool:
        if not user_id:
            return False
        conversation = self.store.get_conversation(conversation_id)
        return bool(conversation) and user_id in conversation['participants']

    def get_messages(self, user_id: str, conversation_id: str, page: int, limit: int) -> Dict[str, Any]:
        """
        One page of a conversation. Page 1 holds the newest messages; each
        page is returned oldest first. Messages addressed to the caller are
        marked read.
        """
        self._require_participant(user_id, conversation_id)
        self.store.mark_read(conversation_id, user_id)

        messages, total = self.store.list_messages(conversation_id, (page - 1) * limit, limit)
        messages.reverse()
        return {
            "messages": messages,
            "current_page": page,
            "total_pages": math.ceil(total / limit) if total else 0,
            "total_messages": total,
        }

    def mark_conversation_read(self, user_id: str, conversation_id: str) -> List[str]:
        self._require_participant(user_id, conversation_id)
        return self.store.mark_read(conversation_id, user_id)

    def count_unread(self, user_id: str) -> int:
        return self.store.count_unread(user_id)
