"""事务封装

所有 Store 写操作都不自动提交；一个命令的全部写入在 atomic() 内完成，
成功提交、失败回滚并重新抛出。事件只在提交之后由调用方发出。

所有 Store 共享一个连接，连接上同一时刻只能有一个事务。
服务层通过 StoreGroup.transaction() 持有写锁进入 atomic()，
命令的校验、写入与回读都在锁内完成，避免另一命令的回滚吞掉本命令的写入。
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, nullcontext
from datetime import datetime

import aiosqlite

from ..config import MAIN_THREAD_TITLE
from .protocols import ChannelStore, MessageStore, TaskStore


@asynccontextmanager
async def atomic(
    conn: aiosqlite.Connection,
    lock: asyncio.Lock | None = None,
) -> AsyncIterator[aiosqlite.Connection]:
    """在同一 SQLite 事务内执行一组写入

    Args:
        conn: 共享连接
        lock: 写锁；给定时整个事务体在锁内执行

    Raises:
        Exception: 事务体内的任何异常，回滚后原样抛出
    """
    async with lock if lock is not None else nullcontext():
        try:
            yield conn
            await conn.commit()
        except BaseException:
            await conn.rollback()
            raise


async def create_channel_with_main_thread(
    channel_store: ChannelStore,
    name: str,
    created_by: int,
    now: datetime,
) -> tuple[int, int]:
    """创建频道及其默认 main 线程，须在事务内调用

    Returns:
        (channel_id, thread_id)

    Raises:
        aiosqlite.IntegrityError: 频道名重复
    """
    channel_id = await channel_store.create_channel(name, now)
    thread_id = await channel_store.create_thread(
        channel_id=channel_id,
        title=MAIN_THREAD_TITLE,
        created_by=created_by,
        created_at=now,
    )
    return channel_id, thread_id


async def delete_message_cascade(
    message_store: MessageStore,
    task_store: TaskStore,
    message_id: int,
) -> None:
    """删除消息的回复、关联任务和消息本身，须在事务内调用"""
    await message_store.delete_replies_for_message(message_id)
    await task_store.delete_task_for_message(message_id)
    await message_store.delete_message(message_id)
