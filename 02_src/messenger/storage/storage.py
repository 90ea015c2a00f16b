"""SQLite storage implementation."""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    AuthType,
    Conversation,
    DirectConversation,
    GroupConversation,
    Message,
    User,
    direct_key,
)


def _to_db(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).isoformat()


def _from_db(value: str) -> datetime:
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class IStorage(Protocol):
    """Persistent storage for users, conversations and messages."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Users
    async def save_user(self, user: User) -> None:
        """Insert a new user."""
        ...

    async def update_user(self, user: User) -> None:
        """Overwrite a user's mutable fields."""
        ...

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        ...

    async def get_users(self, user_ids: list[str]) -> dict[str, User]:
        """Get the existing users among ``user_ids``, keyed by ID."""
        ...

    async def list_users(self, exclude_id: str | None = None) -> list[User]:
        """List all users, optionally excluding one."""
        ...

    async def delete_user(self, user_id: str) -> None:
        """Delete a user record."""
        ...

    # Conversations
    async def insert_direct_conversation(
        self, conversation: DirectConversation
    ) -> DirectConversation:
        """Insert a direct conversation, or return the pair's existing one."""
        ...

    async def save_group(self, group: GroupConversation) -> None:
        """Insert a group conversation."""
        ...

    async def update_conversation(self, conversation: Conversation) -> None:
        """Persist participants and group fields, bumping updated_at."""
        ...

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        ...

    async def find_direct_conversation(
        self, user_a: str, user_b: str
    ) -> DirectConversation | None:
        """Find the direct conversation of an unordered pair."""
        ...

    async def get_conversations_for_user(self, user_id: str) -> list[Conversation]:
        """Conversations a user takes part in, most recently updated first."""
        ...

    async def set_last_message(
        self, conversation_id: str, message_id: str, at: datetime
    ) -> None:
        """Point a conversation at its latest message."""
        ...

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation together with all of its messages."""
        ...

    # Messages
    async def save_message(self, message: Message) -> None:
        """Save a message to storage."""
        ...

    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by ID."""
        ...

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """All messages of a conversation in creation order."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""


    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        # Serializes writes on the shared connection
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    @asynccontextmanager
    async def _transaction(self):
        """Run a write exclusively; commit on success, roll back on error."""
        conn = self._require_conn()
        async with self._write_lock:
            try:
                yield conn
            except Exception:
                await conn.rollback()
                raise
            await conn.commit()

    # Users
    @staticmethod
    def _row_to_user(row) -> User:
        return User(
            id=row[0],
            name=row[1],
            email=row[2],
            avatar=row[3],
            auth_type=AuthType(row[4]),
            password_hash=row[5],
            created_at=_from_db(row[6]),
            updated_at=_from_db(row[7]),
        )

    _USER_COLUMNS = (
        "id, name, email, avatar, auth_type, password_hash, created_at, updated_at"
    )

    async def save_user(self, user: User) -> None:
        """Insert a new user."""
        async with self._transaction() as conn:
            await conn.execute(
                f"""
                INSERT INTO users ({self._USER_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.name,
                    user.email,
                    user.avatar,
                    user.auth_type.value,
                    user.password_hash,
                    _to_db(user.created_at),
                    _to_db(user.updated_at),
                ),
            )

    async def update_user(self, user: User) -> None:
        """Overwrite a user's mutable fields."""
        async with self._transaction() as conn:
            await conn.execute(
                """
                UPDATE users
                SET name = ?, email = ?, avatar = ?, password_hash = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    user.name,
                    user.email,
                    user.avatar,
                    user.password_hash,
                    _to_db(user.updated_at),
                    user.id,
                ),
            )

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {self._USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
        )
        row = await cursor.fetchone()
        return self._row_to_user(row) if row else None

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {self._USER_COLUMNS} FROM users WHERE email = ?", (email,)
        )
        row = await cursor.fetchone()
        return self._row_to_user(row) if row else None

    async def get_users(self, user_ids: list[str]) -> dict[str, User]:
        """Get the existing users among ``user_ids``, keyed by ID."""
        conn = self._require_conn()

        unique_ids = list(dict.fromkeys(user_ids))
        if not unique_ids:
            return {}

        placeholders = ",".join("?" * len(unique_ids))
        cursor = await conn.execute(
            f"SELECT {self._USER_COLUMNS} FROM users WHERE id IN ({placeholders})",
            unique_ids,
        )
        rows = await cursor.fetchall()
        return {row[0]: self._row_to_user(row) for row in rows}

    async def list_users(self, exclude_id: str | None = None) -> list[User]:
        """List all users, optionally excluding one."""
        conn = self._require_conn()

        if exclude_id:
            cursor = await conn.execute(
                f"""
                SELECT {self._USER_COLUMNS} FROM users
                WHERE id != ?
                ORDER BY name ASC
                """,
                (exclude_id,),
            )
        else:
            cursor = await conn.execute(
                f"SELECT {self._USER_COLUMNS} FROM users ORDER BY name ASC"
            )
        rows = await cursor.fetchall()
        return [self._row_to_user(row) for row in rows]

    async def delete_user(self, user_id: str) -> None:
        """Delete a user record."""
        async with self._transaction() as conn:
            await conn.execute("DELETE FROM users WHERE id = ?", (user_id,))

    # Conversations
    async def _get_participants(self, conversation_id: str) -> list[str]:
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT user_id FROM conversation_participants
            WHERE conversation_id = ?
            ORDER BY position ASC
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def _row_to_conversation(self, row) -> Conversation:
        participants = await self._get_participants(row[0])
        if row[1]:
            return GroupConversation(
                id=row[0],
                participants=participants,
                group_name=row[2] or "",
                group_avatar=row[3],
                group_admin=row[4],
                last_message_id=row[5],
                created_at=_from_db(row[6]),
                updated_at=_from_db(row[7]),
            )
        return DirectConversation(
            id=row[0],
            participants=participants,
            last_message_id=row[5],
            created_at=_from_db(row[6]),
            updated_at=_from_db(row[7]),
        )

    _CONVERSATION_COLUMNS = (
        "id, is_group, group_name, group_avatar, group_admin, "
        "last_message_id, created_at, updated_at"
    )

    @staticmethod
    async def _write_participants(
        conn: aiosqlite.Connection, conversation_id: str, participants: list[str]
    ) -> None:
        await conn.execute(
            "DELETE FROM conversation_participants WHERE conversation_id = ?",
            (conversation_id,),
        )
        await conn.executemany(
            """
            INSERT INTO conversation_participants (conversation_id, user_id, position)
            VALUES (?, ?, ?)
            """,
            [
                (conversation_id, user_id, position)
                for position, user_id in enumerate(participants)
            ],
        )

    async def insert_direct_conversation(
        self, conversation: DirectConversation
    ) -> DirectConversation:
        """Insert a direct conversation, or return the pair's existing one."""
        try:
            async with self._transaction() as conn:
                await conn.execute(
                    """
                    INSERT INTO conversations
                    (id, is_group, direct_key, last_message_id, created_at, updated_at)
                    VALUES (?, 0, ?, ?, ?, ?)
                    """,
                    (
                        conversation.id,
                        conversation.key,
                        conversation.last_message_id,
                        _to_db(conversation.created_at),
                        _to_db(conversation.updated_at),
                    ),
                )
                await self._write_participants(
                    conn, conversation.id, conversation.participants
                )
        except sqlite3.IntegrityError:
            # Another request created the pair's conversation first
            existing = await self.find_direct_conversation(
                conversation.participants[0], conversation.participants[1]
            )
            if existing is None:
                raise
            return existing
        return conversation

    async def save_group(self, group: GroupConversation) -> None:
        """Insert a group conversation."""
        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT INTO conversations
                (id, is_group, direct_key, group_name, group_avatar, group_admin,
                 last_message_id, created_at, updated_at)
                VALUES (?, 1, NULL, ?, ?, ?, ?, ?, ?)
                """,
                (
                    group.id,
                    group.group_name,
                    group.group_avatar,
                    group.group_admin,
                    group.last_message_id,
                    _to_db(group.created_at),
                    _to_db(group.updated_at),
                ),
            )
            await self._write_participants(conn, group.id, group.participants)

    async def update_conversation(self, conversation: Conversation) -> None:
        """Persist participants and group fields, bumping updated_at."""
        conversation.updated_at = datetime.now(timezone.utc)
        async with self._transaction() as conn:
            if isinstance(conversation, GroupConversation):
                await conn.execute(
                    """
                    UPDATE conversations
                    SET group_name = ?, group_avatar = ?, group_admin = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        conversation.group_name,
                        conversation.group_avatar,
                        conversation.group_admin,
                        _to_db(conversation.updated_at),
                        conversation.id,
                    ),
                )
            else:
                await conn.execute(
                    "UPDATE conversations SET updated_at = ? WHERE id = ?",
                    (_to_db(conversation.updated_at), conversation.id),
                )
            await self._write_participants(
                conn, conversation.id, conversation.participants
            )

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"SELECT {self._CONVERSATION_COLUMNS} FROM conversations WHERE id = ?",
            (conversation_id,),
        )
        row = await cursor.fetchone()
        return await self._row_to_conversation(row) if row else None

    async def find_direct_conversation(
        self, user_a: str, user_b: str
    ) -> DirectConversation | None:
        """Find the direct conversation of an unordered pair."""
        conn = self._require_conn()

        cursor = await conn.execute(
            f"""
            SELECT {self._CONVERSATION_COLUMNS} FROM conversations
            WHERE is_group = 0 AND direct_key = ?
            """,
            (direct_key(user_a, user_b),),
        )
        row = await cursor.fetchone()
        return await self._row_to_conversation(row) if row else None

    async def get_conversations_for_user(self, user_id: str) -> list[Conversation]:
        """Conversations a user takes part in, most recently updated first."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT c.id, c.is_group, c.group_name, c.group_avatar, c.group_admin,
                   c.last_message_id, c.created_at, c.updated_at
            FROM conversations c
            JOIN conversation_participants p ON p.conversation_id = c.id
            WHERE p.user_id = ?
            ORDER BY c.updated_at DESC, c.rowid DESC
            """,
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [await self._row_to_conversation(row) for row in rows]

    async def set_last_message(
        self, conversation_id: str, message_id: str, at: datetime
    ) -> None:
        """Point a conversation at its latest message."""
        async with self._transaction() as conn:
            await conn.execute(
                """
                UPDATE conversations
                SET last_message_id = ?, updated_at = ?
                WHERE id = ?
                """,
                (message_id, _to_db(at), conversation_id),
            )

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation together with all of its messages."""
        async with self._transaction() as conn:
            await conn.execute(
                "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
            )
            await conn.execute(
                "DELETE FROM conversation_participants WHERE conversation_id = ?",
                (conversation_id,),
            )
            await conn.execute(
                "DELETE FROM conversations WHERE id = ?", (conversation_id,)
            )

    # Messages
    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row[0],
            conversation_id=row[1],
            sender_id=row[2],
            content=row[3],
            file_id=row[4],
            created_at=_from_db(row[5]),
        )

    async def save_message(self, message: Message) -> None:
        """Save a message to storage."""
        async with self._transaction() as conn:
            await conn.execute(
                """
                INSERT INTO messages
                (id, conversation_id, sender_id, content, file_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.conversation_id,
                    message.sender_id,
                    message.content,
                    message.file_id,
                    _to_db(message.created_at),
                ),
            )

    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by ID."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, conversation_id, sender_id, content, file_id, created_at
            FROM messages
            WHERE id = ?
            """,
            (message_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_message(row) if row else None

    async def get_messages(self, conversation_id: str) -> list[Message]:
        """All messages of a conversation in creation order."""
        conn = self._require_conn()

        cursor = await conn.execute(
            """
            SELECT id, conversation_id, sender_id, content, file_id, created_at
            FROM messages
            WHERE conversation_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        tables = [
            "messages",
            "conversation_participants",
            "conversations",
            "users",
        ]

        async with self._transaction() as conn:
            for table in tables:
                await conn.execute(f"DELETE FROM {table}")
