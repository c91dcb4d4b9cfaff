"""ChannelStore SQLite 实现 -- channels + threads 两张表"""

from datetime import datetime

import aiosqlite

from ..models.chat import Channel, Thread, ThreadMeta
from .base import SqliteStoreBase, from_db_ts, to_db_ts


class SqliteChannelStore(SqliteStoreBase):
    """ChannelStore 的 SQLite 实现"""

    async def create_channel(self, name: str, created_at: datetime) -> int:
        """创建频道，名称重复时抛出 sqlite3.IntegrityError"""
        result = await self._execute_write(
            "INSERT INTO channels (name, created_at) VALUES (?, ?)",
            (name, to_db_ts(created_at)),
        )
        return result.lastrowid

    async def get_channel(self, channel_id: int) -> Channel | None:
        row = await self._fetch_one("SELECT * FROM channels WHERE id = ?", (channel_id,))
        return self._row_to_channel(row) if row is not None else None

    async def list_channels(self) -> list[Channel]:
        """按 id 升序返回全部频道"""
        rows = await self._fetch_all("SELECT * FROM channels ORDER BY id ASC")
        return [self._row_to_channel(row) for row in rows]

    async def count_channels(self) -> int:
        row = await self._fetch_one("SELECT COUNT(*) AS n FROM channels")
        return row["n"] if row is not None else 0

    async def create_thread(
        self,
        channel_id: int,
        title: str,
        created_by: int,
        created_at: datetime,
    ) -> int:
        result = await self._execute_write(
            """
            INSERT INTO threads (channel_id, title, created_by, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (channel_id, title, created_by, to_db_ts(created_at)),
        )
        return result.lastrowid

    async def get_thread(self, thread_id: int) -> Thread | None:
        row = await self._fetch_one("SELECT * FROM threads WHERE id = ?", (thread_id,))
        return self._row_to_thread(row) if row is not None else None

    async def list_threads(self, channel_id: int) -> list[Thread]:
        """频道内线程，按 id 倒序（最新在前）"""
        rows = await self._fetch_all(
            "SELECT * FROM threads WHERE channel_id = ? ORDER BY id DESC",
            (channel_id,),
        )
        return [self._row_to_thread(row) for row in rows]

    async def get_thread_meta(self, thread_id: int) -> ThreadMeta | None:
        """线程所属频道 ID、频道名与线程标题"""
        row = await self._fetch_one(
            """
            SELECT threads.id AS thread_id,
                   threads.channel_id,
                   channels.name AS channel_name,
                   threads.title AS thread_title
            FROM threads
            JOIN channels ON channels.id = threads.channel_id
            WHERE threads.id = ?
            """,
            (thread_id,),
        )
        if row is None:
            return None
        return ThreadMeta(
            thread_id=row["thread_id"],
            channel_id=row["channel_id"],
            channel_name=row["channel_name"],
            thread_title=row["thread_title"],
        )

    @staticmethod
    def _row_to_channel(row: aiosqlite.Row) -> Channel:
        return Channel(
            id=row["id"],
            name=row["name"],
            created_at=from_db_ts(row["created_at"]),
        )

    @staticmethod
    def _row_to_thread(row: aiosqlite.Row) -> Thread:
        return Thread(
            id=row["id"],
            channel_id=row["channel_id"],
            title=row["title"],
            created_by=row["created_by"],
            created_at=from_db_ts(row["created_at"]),
        )
