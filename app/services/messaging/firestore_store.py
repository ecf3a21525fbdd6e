# app/services/messaging/firestore_store.py
import logging
from dataclasses import asdict
from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions
from typing import Any, Dict, Iterator, List, Optional, Tuple

from app.models.message import Conversation, Message
from app.utils.datetime_utils import DateTimeUtils

BATCH_LIMIT = 450


class FirestoreMessageStore:
    """Messages in the 'conversations' and 'messages' Firestore collections."""

    def __init__(self, db=None):
        self.db = db or firestore.client()
        self.conversations_ref = self.db.collection('conversations')
        self.messages_ref = self.db.collection('messages')
        self.conversation_keys_ref = self.db.collection('conversation_keys')

    def find_conversation(self, participant_key: str) -> Optional[Dict[str, Any]]:
        query = self.conversations_ref.where('participant_key', '==', participant_key).limit(1).stream()
        doc = next(query, None)
        return doc.to_dict() if doc else None

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        doc = self.conversations_ref.document(conversation_id).get()
        return doc.to_dict() if doc.exists else None

    def create_conversation(self, conversation: Conversation) -> Dict[str, Any]:
        """
        The pair is reserved by a 'conversation_keys/{participant_key}'
        document written in the same batch. When another writer got there
        first, its conversation is returned instead.
        """
        data = asdict(conversation)
        key_ref = self.conversation_keys_ref.document(conversation.participant_key)
        batch = self.db.batch()
        batch.create(key_ref, {'conversation_id': conversation.conversation_id})
        batch.set(self.conversations_ref.document(conversation.conversation_id), data)
        try:
            batch.commit()
        except google_exceptions.AlreadyExists:
            existing_id = key_ref.get().to_dict()['conversation_id']
            logging.info(f"Conversation {conversation.participant_key} was created concurrently; reusing {existing_id}")
            return self.get_conversation(existing_id)
        return data

    def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        docs = self.conversations_ref.where('participants', 'array_contains', user_id) \
            .order_by('updated_at', direction=firestore.Query.DESCENDING).stream()
        return [doc.to_dict() for doc in docs]

    def add_message(self, message: Message) -> Dict[str, Any]:
        data = asdict(message)
        batch = self.db.batch()
        batch.set(self.messages_ref.document(message.message_id), data)
        batch.update(self.conversations_ref.document(message.conversation_id), {
            'last_message_id': message.message_id,
            'updated_at': message.created_at,
        })
        batch.commit()
        return data

    def get_message(self, message_id: str) -> Optional[Dict[str, Any]]:
        doc = self.messages_ref.document(message_id).get()
        return doc.to_dict() if doc.exists else None

    def list_messages(self, conversation_id: str, offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        base_query = self.messages_ref.where('conversation_id', '==', conversation_id)
        total = base_query.count().get()[0][0].value
        docs = base_query.order_by('created_at', direction=firestore.Query.DESCENDING) \
            .offset(offset).limit(limit).stream()
        return [doc.to_dict() for doc in docs], total

    def mark_read(self, conversation_id: str, recipient_id: str) -> List[str]:
        docs = self.messages_ref.where('conversation_id', '==', conversation_id) \
            .where('recipient_id', '==', recipient_id) \
            .where('read', '==', False).stream()

        now = DateTimeUtils.now()
        marked = []
        batch = self.db.batch()
        for doc in docs:
            batch.update(doc.reference, {'read': True, 'updated_at': now})
            marked.append(doc.id)
            if len(marked) % BATCH_LIMIT == 0:
                batch.commit()
                batch = self.db.batch()
        batch.commit()
        return marked

    def count_unread(self, recipient_id: str) -> int:
        query = self.messages_ref.where('recipient_id', '==', recipient_id).where('read', '==', False)
        return query.count().get()[0][0].value

    def iter_conversations(self) -> Iterator[Dict[str, Any]]:
        for doc in self.conversations_ref.stream():
            yield doc.to_dict()

    def list_all_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        docs = self.messages_ref.where('conversation_id', '==', conversation_id).order_by('created_at').stream()
        messages = [doc.to_dict() for doc in docs]
        logging.debug(f"Loaded {len(messages)} messages of conversation {conversation_id}")
        return messages
