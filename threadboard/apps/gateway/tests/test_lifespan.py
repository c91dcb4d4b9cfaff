"""FastAPI lifespan 测试

测试内容：
1. 启动时 DB 初始化并写入默认 general 频道（owner 为 TaskBot）
2. 重启不重复创建
3. 关闭配置后不写默认频道
"""

from pathlib import Path

import pytest
from threadboard.core.config import TASK_BOT_NAME
from threadboard.core.store import create_store_group


@pytest.fixture
def lifespan_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "sqlite" / "lifespan.db"
    monkeypatch.setenv("THREADBOARD_DB_PATH", str(db_path))
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")
    return db_path


async def _run_lifespan() -> int:
    from threadboard.gateway.main import create_app

    app = create_app()
    async with app.router.lifespan_context(app):
        store_group = app.state.store_group
        assert app.state.sse_hub.subscriber_count == 0
        channels = await store_group.channel_store.list_channels()
        return len(channels)


class TestLifespan:
    async def test_seeds_default_channel_once(self, lifespan_env: Path):
        count = await _run_lifespan()
        assert count == 1
        count = await _run_lifespan()
        assert count == 1

        group = await create_store_group(str(lifespan_env))
        try:
            channel = (await group.channel_store.list_channels())[0]
            assert channel.name == "general"
            thread = (await group.channel_store.list_threads(channel.id))[0]
            assert thread.title == "main"
            owner = await group.user_store.get_user(thread.created_by)
            assert owner.name == TASK_BOT_NAME
        finally:
            await group.conn.close()

    async def test_seed_disabled(self, lifespan_env: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("THREADBOARD_SEED_DEFAULT_CHANNEL", "false")
        count = await _run_lifespan()
        assert count == 0
