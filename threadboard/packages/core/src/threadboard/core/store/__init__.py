"""Threadboard Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from .base import SqliteStoreBase, WriteResult
from .channel_store import SqliteChannelStore
from .message_store import SqliteMessageStore
from .protocols import ChannelStore, MessageStore, TaskStore, UserStore
from .sqlite_init import init_db, verify_wal_mode
from .task_store import SqliteTaskStore
from .transaction import atomic, create_channel_with_main_thread, delete_message_cascade
from .user_store import SqliteUserStore


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.user_store: UserStore = SqliteUserStore(conn)
        self.channel_store: ChannelStore = SqliteChannelStore(conn)
        self.message_store: MessageStore = SqliteMessageStore(conn)
        self.task_store: TaskStore = SqliteTaskStore(conn)
        self.write_lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """持有写锁的事务：同一时刻只有一个命令在连接上读写"""
        async with atomic(self.conn, self.write_lock) as conn:
            yield conn


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    Args:
        db_path: SQLite 数据库文件路径（":memory:" 表示内存库）

    Returns:
        StoreGroup 实例
    """
    if db_path != ":memory:":
        # 确保数据库目录存在
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "SqliteStoreBase",
    "WriteResult",
    "SqliteUserStore",
    "SqliteChannelStore",
    "SqliteMessageStore",
    "SqliteTaskStore",
    "UserStore",
    "ChannelStore",
    "MessageStore",
    "TaskStore",
    "init_db",
    "verify_wal_mode",
    "atomic",
    "create_channel_with_main_thread",
    "delete_message_cascade",
]
