"""MessageStore SQLite 实现 -- messages + replies + thread_reads

消息读取总是带上 user_name 与 reply_count，回复读取带上 user_name。
"""

from datetime import datetime

import aiosqlite

from ..models.message import Message, Reply, ThreadRead
from .base import SqliteStoreBase, from_db_ts, to_db_ts

_MESSAGE_SELECT = """
SELECT messages.*,
       users.name AS user_name,
       (SELECT COUNT(*) FROM replies WHERE replies.message_id = messages.id) AS reply_count
FROM messages
JOIN users ON users.id = messages.user_id
"""

_REPLY_SELECT = """
SELECT replies.*, users.name AS user_name
FROM replies
JOIN users ON users.id = replies.user_id
"""


class SqliteMessageStore(SqliteStoreBase):
    """MessageStore 的 SQLite 实现"""

    # ---- messages ----

    async def create_message(
        self,
        thread_id: int,
        user_id: int,
        content: str,
        created_at: datetime,
        idempotency_key: str | None = None,
    ) -> int:
        result = await self._execute_write(
            """
            INSERT INTO messages (thread_id, user_id, content, created_at, idempotency_key)
            VALUES (?, ?, ?, ?, ?)
            """,
            (thread_id, user_id, content, to_db_ts(created_at), idempotency_key),
        )
        return result.lastrowid

    async def get_message(self, message_id: int) -> Message | None:
        row = await self._fetch_one(f"{_MESSAGE_SELECT} WHERE messages.id = ?", (message_id,))
        return self._row_to_message(row) if row is not None else None

    async def get_message_by_idempotency_key(
        self, user_id: int, thread_id: int, key: str
    ) -> Message | None:
        """查找同一发送者在同一线程内用该幂等键写入的消息"""
        row = await self._fetch_one(
            f"""
            {_MESSAGE_SELECT}
            WHERE messages.user_id = ? AND messages.thread_id = ?
              AND messages.idempotency_key = ?
            """,
            (user_id, thread_id, key),
        )
        return self._row_to_message(row) if row is not None else None

    async def list_messages(self, thread_id: int) -> list[Message]:
        """线程内消息，按 id 升序"""
        rows = await self._fetch_all(
            f"{_MESSAGE_SELECT} WHERE messages.thread_id = ? ORDER BY messages.id ASC",
            (thread_id,),
        )
        return [self._row_to_message(row) for row in rows]

    async def update_message_content(self, message_id: int, content: str) -> None:
        await self._execute_write(
            "UPDATE messages SET content = ? WHERE id = ?",
            (content, message_id),
        )

    async def delete_message(self, message_id: int) -> None:
        await self._execute_write("DELETE FROM messages WHERE id = ?", (message_id,))

    # ---- replies ----

    async def create_reply(
        self,
        message_id: int,
        user_id: int,
        content: str,
        created_at: datetime,
    ) -> int:
        result = await self._execute_write(
            """
            INSERT INTO replies (message_id, user_id, content, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (message_id, user_id, content, to_db_ts(created_at)),
        )
        return result.lastrowid

    async def get_reply(self, reply_id: int) -> Reply | None:
        row = await self._fetch_one(f"{_REPLY_SELECT} WHERE replies.id = ?", (reply_id,))
        return self._row_to_reply(row) if row is not None else None

    async def list_replies(self, message_id: int) -> list[Reply]:
        rows = await self._fetch_all(
            f"{_REPLY_SELECT} WHERE replies.message_id = ? ORDER BY replies.id ASC",
            (message_id,),
        )
        return [self._row_to_reply(row) for row in rows]

    async def update_reply_content(self, reply_id: int, content: str) -> None:
        await self._execute_write(
            "UPDATE replies SET content = ? WHERE id = ?",
            (content, reply_id),
        )

    async def delete_reply(self, reply_id: int) -> None:
        await self._execute_write("DELETE FROM replies WHERE id = ?", (reply_id,))

    async def delete_replies_for_message(self, message_id: int) -> int:
        result = await self._execute_write(
            "DELETE FROM replies WHERE message_id = ?",
            (message_id,),
        )
        return result.rowcount

    # ---- thread_reads ----

    async def upsert_thread_read(
        self,
        user_id: int,
        thread_id: int,
        last_read_message_id: int,
        updated_at: datetime,
    ) -> None:
        await self._execute_write(
            """
            INSERT INTO thread_reads (user_id, thread_id, last_read_message_id, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(user_id, thread_id)
            DO UPDATE SET last_read_message_id = excluded.last_read_message_id,
                          updated_at = excluded.updated_at
            """,
            (user_id, thread_id, last_read_message_id, to_db_ts(updated_at)),
        )

    async def get_thread_read(self, user_id: int, thread_id: int) -> ThreadRead | None:
        row = await self._fetch_one(
            "SELECT * FROM thread_reads WHERE user_id = ? AND thread_id = ?",
            (user_id, thread_id),
        )
        if row is None:
            return None
        return ThreadRead(
            user_id=row["user_id"],
            thread_id=row["thread_id"],
            last_read_message_id=row["last_read_message_id"],
            updated_at=from_db_ts(row["updated_at"]),
        )

    @staticmethod
    def _row_to_message(row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            thread_id=row["thread_id"],
            user_id=row["user_id"],
            content=row["content"],
            created_at=from_db_ts(row["created_at"]),
            user_name=row["user_name"],
            reply_count=row["reply_count"],
        )

    @staticmethod
    def _row_to_reply(row: aiosqlite.Row) -> Reply:
        return Reply(
            id=row["id"],
            message_id=row["message_id"],
            user_id=row["user_id"],
            content=row["content"],
            created_at=from_db_ts(row["created_at"]),
            user_name=row["user_name"],
        )
