# app/cli.py
"""
Maintenance commands, registered on the app by create_app:

    flask messages init-tables
    flask messages migrate --batch-size 100
    flask stories purge-expired
"""

import click
from flask import current_app
from flask.cli import AppGroup

from app.services.messaging import FirestoreMessageStore, SqlMessageStore, migrate_messages

messages_cli = AppGroup('messages', help='Direct message storage.')
stories_cli = AppGroup('stories', help='Story maintenance.')


def _sql_store() -> SqlMessageStore:
    store = current_app.services.get('message_store')
    if isinstance(store, SqlMessageStore):
        return store
    return SqlMessageStore(current_app.config.get('MESSAGE_DATABASE_URL'))


@messages_cli.command('init-tables')
def init_tables():
    """Create the relational message tables."""
    _sql_store().create_tables()
    click.echo("Message tables are ready.")


@messages_cli.command('migrate')
@click.option('--batch-size', default=100, show_default=True, type=click.IntRange(min=1),
              help='Messages inserted per batch.')
def migrate(batch_size):
    """Copy every Firestore conversation into the relational store."""
    source = FirestoreMessageStore(current_app.services['db'])
    target = _sql_store()
    target.create_tables()

    report = migrate_messages(source, target, batch_size=batch_size)
    click.echo(
        f"Migrated {report.conversations_migrated} conversations "
        f"({report.messages_migrated} messages), "
        f"skipped {report.conversations_skipped}, failed {report.conversations_failed}."
    )


@stories_cli.command('purge-expired')
def purge_expired():
    """Delete expired stories."""
    removed = current_app.services['stories'].purge_expired()
    click.echo(f"Removed {removed} expired stories.")
