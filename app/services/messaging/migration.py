# app/services/messaging/migration.py
"""
One-way copy of direct messages from the Firestore store into the SQL store.
Reruns are safe: conversations already present in the target are skipped.
"""

import logging
from dataclasses import dataclass

from app.services.messaging.base import MessageStore
from app.services.messaging.sql_store import SqlMessageStore


@dataclass
class MigrationReport:
    conversations_migrated: int = 0
    conversations_skipped: int = 0
    conversations_failed: int = 0
    messages_migrated: int = 0

    def as_dict(self) -> dict:
        return {
            "conversations_migrated": self.conversations_migrated,
            "conversations_skipped": self.conversations_skipped,
            "conversations_failed": self.conversations_failed,
            "messages_migrated": self.messages_migrated,
        }


def migrate_messages(source: MessageStore, target: SqlMessageStore, batch_size: int = 100) -> MigrationReport:
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    report = MigrationReport()
    for conversation in source.iter_conversations():
        conversation_id = conversation["conversation_id"]
        if target.get_conversation(conversation_id):
            report.conversations_skipped += 1
            continue
        try:
            messages = source.list_all_messages(conversation_id)
            report.messages_migrated += target.import_conversation(conversation, messages, batch_size)
            report.conversations_migrated += 1
        except Exception as e:
            report.conversations_failed += 1
            logging.error(f"Failed to migrate conversation {conversation_id}: {e}", exc_info=True)

    logging.info(f"Message migration finished: {report.as_dict()}")
    return report
