"""SQLite message store backend.

Provides persistent conversation storage using a SQLite database.
Uses aiosqlite for async access.

Rows are read without ORDER BY and sorted client-side, so the table only
needs a single-column index on the scope path.
"""

import sqlite3
from datetime import datetime
from pathlib import Path
from uuid import uuid4

import aiosqlite

from ..errors import StoreSubscriptionError, StoreWriteError
from .base import MessageStore, next_timestamp
from .models import ConversationScope, Message, Sender


class SQLiteMessageStore(MessageStore):
    """SQLite-backed message store.

    Stores every scope's messages in one table keyed by scope path.
    Change notifications reach subscribers of this store instance; writes
    made by other processes show up on the next local change.
    """

    def __init__(self, path: str | Path = "./chatline.db"):
        super().__init__()
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._connection = await aiosqlite.connect(self._db_path)
        await self._create_schema()

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id TEXT PRIMARY KEY,
                scope_path TEXT NOT NULL,
                text TEXT NOT NULL,
                sender TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                is_error INTEGER NOT NULL DEFAULT 0
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_messages_scope
            ON messages(scope_path)
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def _insert(self, scope: ConversationScope, message: Message) -> Message:
        if self._connection is None:
            raise StoreWriteError("Message store is not connected")

        try:
            async with self._connection.execute(
                "SELECT MAX(timestamp) FROM messages WHERE scope_path = ?",
                (scope.path,)
            ) as cursor:
                row = await cursor.fetchone()

            last = datetime.fromisoformat(row[0]) if row and row[0] else None
            persisted = message.model_copy(
                update={"id": uuid4().hex, "timestamp": next_timestamp(last)}
            )

            await self._connection.execute("""
                INSERT INTO messages (id, scope_path, text, sender, timestamp, is_error)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (
                persisted.id,
                scope.path,
                persisted.text,
                persisted.sender.value,
                persisted.timestamp.isoformat(timespec="microseconds"),
                int(persisted.is_error)
            ))
            await self._connection.commit()
        except sqlite3.Error as e:
            raise StoreWriteError(f"Could not write message: {e}") from e

        return persisted

    async def _fetch(self, scope: ConversationScope) -> list[Message]:
        if self._connection is None:
            raise StoreSubscriptionError("Message store is not connected")

        try:
            async with self._connection.execute(
                """
                SELECT id, text, sender, timestamp, is_error
                FROM messages
                WHERE scope_path = ?
                """,
                (scope.path,)
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreSubscriptionError(f"Could not read messages: {e}") from e

        messages = []
        for row in rows:
            message_id, text, sender, ts, is_error = row
            messages.append(Message(
                id=message_id,
                text=text,
                sender=Sender(sender),
                timestamp=datetime.fromisoformat(ts),
                is_error=bool(is_error)
            ))

        return messages

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path
