"""事务封装单元测试

测试内容：
1. atomic() 成功提交
2. 异常时回滚并原样抛出
3. 外键约束生效
4. StoreGroup.transaction() 串行化命令，回滚不影响其他命令
"""

import asyncio

import aiosqlite
import pytest
from threadboard.core.store import atomic


class TestAtomic:
    """atomic() 事务边界"""

    async def test_commit_on_success(self, store_group, clock):
        async with atomic(store_group.conn):
            await store_group.channel_store.create_channel("ops", clock())
        assert await store_group.channel_store.count_channels() == 1

    async def test_rollback_on_error(self, store_group, clock):
        with pytest.raises(RuntimeError, match="boom"):
            async with atomic(store_group.conn):
                await store_group.channel_store.create_channel("ops", clock())
                raise RuntimeError("boom")
        assert await store_group.channel_store.count_channels() == 0

    async def test_partial_write_rolled_back(self, store_group, clock):
        async with atomic(store_group.conn):
            await store_group.channel_store.create_channel("ops", clock())

        with pytest.raises(aiosqlite.IntegrityError):
            async with atomic(store_group.conn):
                await store_group.channel_store.create_channel("dev", clock())
                await store_group.channel_store.create_channel("ops", clock())
        names = [c.name for c in await store_group.channel_store.list_channels()]
        assert names == ["ops"]

    async def test_foreign_keys_enforced(self, store_group, clock):
        with pytest.raises(aiosqlite.IntegrityError):
            async with atomic(store_group.conn):
                await store_group.channel_store.create_thread(999, "orphan", 1, clock())


class TestStoreGroupTransaction:
    """StoreGroup.transaction() 写锁"""

    async def test_transactions_do_not_interleave(self, store_group):
        order: list[str] = []

        async def body(tag: str) -> None:
            async with store_group.transaction():
                order.append(f"{tag}-begin")
                await asyncio.sleep(0)
                order.append(f"{tag}-end")

        await asyncio.gather(body("a"), body("b"))
        assert order == ["a-begin", "a-end", "b-begin", "b-end"]

    async def test_rollback_keeps_concurrent_writes(self, store_group, clock):
        async def writer(name: str) -> None:
            async with store_group.transaction():
                await store_group.channel_store.create_channel(name, clock())
                await asyncio.sleep(0)
                await store_group.channel_store.create_channel(f"{name}-2", clock())

        async def failing() -> None:
            async with store_group.transaction():
                await store_group.channel_store.create_channel("doomed", clock())
                await asyncio.sleep(0)
                raise RuntimeError("boom")

        results = await asyncio.gather(
            writer("a"), failing(), writer("b"), return_exceptions=True
        )
        assert isinstance(results[1], RuntimeError)
        names = sorted(c.name for c in await store_group.channel_store.list_channels())
        assert names == ["a", "a-2", "b", "b-2"]

    async def test_lock_released_after_error(self, store_group, clock):
        with pytest.raises(RuntimeError):
            async with store_group.transaction():
                raise RuntimeError("boom")
        assert not store_group.write_lock.locked()
        async with store_group.transaction():
            await store_group.channel_store.create_channel("ops", clock())
        assert await store_group.channel_store.count_channels() == 1
