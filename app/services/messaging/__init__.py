# app/services/messaging/__init__.py
"""
Direct message storage.

MESSAGE_BACKEND selects the implementation once, in create_app.
"""

from .base import MessageStore
from .firestore_store import FirestoreMessageStore
from .sql_store import SqlMessageStore
from .migration import MigrationReport, migrate_messages


def build_message_store(backend: str, db=None, database_url=None) -> MessageStore:
    if backend == 'firestore':
        return FirestoreMessageStore(db)
    if backend == 'sql':
        return SqlMessageStore(database_url)
    raise ValueError(f"Unknown MESSAGE_BACKEND: {backend!r}")


__all__ = [
    'MessageStore', 'FirestoreMessageStore', 'SqlMessageStore',
    'MigrationReport', 'migrate_messages', 'build_message_store',
]
