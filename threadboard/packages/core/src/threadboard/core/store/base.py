"""Store 基础读写原语

对应三种存储操作：写入（返回自增 ID 与影响行数）、单行读取、多行读取。
写入不自动提交事务，由调用方（transaction.atomic）管理事务边界。
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Any, NamedTuple

import aiosqlite


class WriteResult(NamedTuple):
    """写入结果"""

    lastrowid: int
    rowcount: int


def to_db_ts(value: datetime) -> str:
    """时间戳统一序列化为 ISO-8601 字符串（UTC，可按字典序比较）"""
    return value.isoformat()


def from_db_ts(value: str | None) -> datetime | None:
    """反序列化 ISO-8601 时间戳"""
    if value is None:
        return None
    return datetime.fromisoformat(value)


class SqliteStoreBase:
    """SQLite Store 公共基类 -- 所有 Store 共享同一个连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def _execute_write(
        self,
        sql: str,
        params: Sequence[Any] = (),
    ) -> WriteResult:
        cursor = await self._conn.execute(sql, params)
        return WriteResult(lastrowid=cursor.lastrowid or 0, rowcount=cursor.rowcount)

    async def _fetch_one(
        self,
        sql: str,
        params: Sequence[Any] = (),
    ) -> aiosqlite.Row | None:
        cursor = await self._conn.execute(sql, params)
        return await cursor.fetchone()

    async def _fetch_all(
        self,
        sql: str,
        params: Sequence[Any] = (),
    ) -> list[aiosqlite.Row]:
        cursor = await self._conn.execute(sql, params)
        return list(await cursor.fetchall())
