# app/services/messaging/sql_store.py
"""
Relational message store. Accepts any SQLAlchemy URL: the hosted Postgres
database in production, SQLite in tests.
"""

import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, String, Text,
    create_engine, func, select, update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.models.message import Conversation, Message
from app.utils.datetime_utils import DateTimeUtils

Base = declarative_base()


class ConversationRow(Base):
    __tablename__ = "conversations"

    conversation_id = Column(String(64), primary_key=True)
    participant_a = Column(String(64), nullable=False, index=True)
    participant_b = Column(String(64), nullable=False, index=True)
    participant_key = Column(String(160), nullable=False, unique=True)
    last_message_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class MessageRow(Base):
    __tablename__ = "messages"

    message_id = Column(String(64), primary_key=True)
    conversation_id = Column(
        String(64), ForeignKey("conversations.conversation_id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    sender_id = Column(String(64), nullable=False)
    recipient_id = Column(String(64), nullable=False)
    text = Column(Text, nullable=True)
    media_url = Column(Text, nullable=True)
    media_type = Column(String(16), nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_messages_conversation_created", "conversation_id", "created_at"),
        Index("ix_messages_recipient_unread", "recipient_id", "read"),
    )


def _conversation_dict(row: ConversationRow) -> Dict[str, Any]:
    return {
        "conversation_id": row.conversation_id,
        "participants": [row.participant_a, row.participant_b],
        "participant_key": row.participant_key,
        "last_message_id": row.last_message_id,
        "created_at": DateTimeUtils.ensure_utc(row.created_at),
        "updated_at": DateTimeUtils.ensure_utc(row.updated_at),
    }


def _message_dict(row: MessageRow) -> Dict[str, Any]:
    return {
        "message_id": row.message_id,
        "conversation_id": row.conversation_id,
        "sender_id": row.sender_id,
        "recipient_id": row.recipient_id,
        "text": row.text,
        "media_url": row.media_url,
        "media_type": row.media_type,
        "read": bool(row.read),
        "created_at": DateTimeUtils.ensure_utc(row.created_at),
        "updated_at": DateTimeUtils.ensure_utc(row.updated_at),
    }


def _message_row(data: Dict[str, Any]) -> MessageRow:
    created_at = DateTimeUtils.ensure_utc(data.get("created_at")) or DateTimeUtils.now()
    return MessageRow(
        message_id=data["message_id"],
        conversation_id=data["conversation_id"],
        sender_id=data["sender_id"],
        recipient_id=data["recipient_id"],
        text=data.get("text"),
        media_url=data.get("media_url"),
        media_type=data.get("media_type"),
        read=bool(data.get("read", False)),
        created_at=created_at,
        updated_at=DateTimeUtils.ensure_utc(data.get("updated_at")) or created_at,
    )


class SqlMessageStore:
    """SQLAlchemy-backed message store."""

    def __init__(self, database_url: Optional[str] = None, engine=None):
        if engine is None:
            if not database_url:
                raise ValueError("MESSAGE_DATABASE_URL is required for the sql message backend")
            engine = create_engine(
                database_url,
                future=True,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
        self.engine = engine
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )

    def create_tables(self) -> None:
        Base.metadata.create_all(self.engine)

    def find_conversation(self, participant_key: str) -> Optional[Dict[str, Any]]:
        with self.Session() as session:
            stmt = select(ConversationRow).where(ConversationRow.participant_key == participant_key)
            row = session.execute(stmt).scalar_one_or_none()
            return _conversation_dict(row) if row else None

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        with self.Session() as session:
            row = session.get(ConversationRow, conversation_id)
            return _conversation_dict(row) if row else None

    def create_conversation(self, conversation: Conversation) -> Dict[str, Any]:
        first, second = conversation.participants
        with self.Session() as session:
            row = ConversationRow(
                conversation_id=conversation.conversation_id,
                participant_a=first,
                participant_b=second,
                participant_key=conversation.participant_key,
                last_message_id=conversation.last_message_id,
                created_at=conversation.created_at,
                updated_at=conversation.updated_at,
            )
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = self.find_conversation(conversation.participant_key)
                if existing is None:
                    raise
                logging.info(f"Conversation {conversation.participant_key} was created concurrently; reusing it")
                return existing
            return _conversation_dict(row)

    def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        with self.Session() as session:
            stmt = (
                select(ConversationRow)
                .where((ConversationRow.participant_a == user_id) | (ConversationRow.participant_b == user_id))
                .order_by(ConversationRow.updated_at.desc())
            )
            return [_conversation_dict(row) for row in session.execute(stmt).scalars()]

    def add_message(self, message: Message) -> Dict[str, Any]:
        with self.Session() as session:
            conversation = session.get(ConversationRow, message.conversation_id)
            if not conversation:
                raise LookupError(f"Conversation not found: {message.conversation_id}")
            row = MessageRow(
                message_id=message.message_id,
                conversation_id=message.conversation_id,
                sender_id=message.sender_id,
                recipient_id=message.recipient_id,
                text=message.text,
                media_url=message.media_url,
                media_type=message.media_type,
                read=message.read,
                created_at=message.created_at,
                updated_at=message.updated_at,
            )
            session.add(row)
            conversation.last_message_id = message.message_id
            conversation.updated_at = message.created_at
            session.commit()
            return _message_dict(row)

    def get_message(self, message_id: str) -> Optional[Dict[str, Any]]:
        with self.Session() as session:
            row = session.get(MessageRow, message_id)
            return _message_dict(row) if row else None

    def list_messages(self, conversation_id: str, offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        with self.Session() as session:
            total = session.execute(
                select(func.count()).select_from(MessageRow).where(MessageRow.conversation_id == conversation_id)
            ).scalar_one()
            stmt = (
                select(MessageRow)
                .where(MessageRow.conversation_id == conversation_id)
                .order_by(MessageRow.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            return [_message_dict(row) for row in session.execute(stmt).scalars()], total

    def mark_read(self, conversation_id: str, recipient_id: str) -> List[str]:
        with self.Session() as session:
            ids = list(session.execute(
                select(MessageRow.message_id).where(
                    MessageRow.conversation_id == conversation_id,
                    MessageRow.recipient_id == recipient_id,
                    MessageRow.read.is_(False),
                )
            ).scalars())
            if ids:
                session.execute(
                    update(MessageRow)
                    .where(MessageRow.message_id.in_(ids))
                    .values(read=True, updated_at=DateTimeUtils.now())
                )
                session.commit()
            return ids

    def count_unread(self, recipient_id: str) -> int:
        with self.Session() as session:
            return session.execute(
                select(func.count()).select_from(MessageRow).where(
                    MessageRow.recipient_id == recipient_id,
                    MessageRow.read.is_(False),
                )
            ).scalar_one()

    def iter_conversations(self) -> Iterator[Dict[str, Any]]:
        with self.Session() as session:
            stmt = select(ConversationRow).order_by(ConversationRow.created_at)
            rows = list(session.execute(stmt).scalars())
        for row in rows:
            yield _conversation_dict(row)

    def list_all_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        with self.Session() as session:
            stmt = (
                select(MessageRow)
                .where(MessageRow.conversation_id == conversation_id)
                .order_by(MessageRow.created_at.asc())
            )
            return [_message_dict(row) for row in session.execute(stmt).scalars()]

    def import_conversation(self, conversation: Dict[str, Any], messages: Iterable[Dict[str, Any]],
                            batch_size: int = 100) -> int:
        """
        Insert a conversation with its messages, keeping their ids, in one
        transaction. last_message_id ends up on the newest message.
        Returns the number of messages written.
        """
        messages = sorted(messages, key=lambda m: DateTimeUtils.ensure_utc(m.get("created_at")) or DateTimeUtils.now())
        first, second = sorted(conversation["participants"])
        created_at = DateTimeUtils.ensure_utc(conversation.get("created_at")) or DateTimeUtils.now()

        with self.Session() as session:
            row = ConversationRow(
                conversation_id=conversation["conversation_id"],
                participant_a=first,
                participant_b=second,
                participant_key=conversation.get("participant_key") or f"{first}_{second}",
                last_message_id=None,
                created_at=created_at,
                updated_at=DateTimeUtils.ensure_utc(conversation.get("updated_at")) or created_at,
            )
            session.add(row)
            session.flush()

            for i in range(0, len(messages), batch_size):
                session.add_all([_message_row(m) for m in messages[i:i + batch_size]])
                session.flush()

            if messages:
                row.last_message_id = messages[-1]["message_id"]
            session.commit()

        logging.info(f"Imported conversation {conversation['conversation_id']} with {len(messages)} messages")
        return len(messages)
