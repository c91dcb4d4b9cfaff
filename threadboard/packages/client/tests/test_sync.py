"""SyncEngine 单元测试

测试内容：
1. bootstrap / focus 加载快照并持久化已读游标
2. 聚焦线程内事件直接更新本地列表
3. 未聚焦线程事件累加未读与活动
4. TaskBot 消息过滤
5. 任务事件按范围重新拉取
6. connected/未知/畸形帧被忽略
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

import pytest
import pytest_asyncio
from threadboard.client import ApiError, SyncEngine, TaskScope
from threadboard.core.models import Channel, Message, Reply, Task, Thread

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def _message(message_id: int, thread_id: int, content: str = "hi", user_name: str = "alice") -> Message:
    return Message(
        id=message_id,
        thread_id=thread_id,
        user_id=1,
        content=content,
        created_at=NOW,
        user_name=user_name,
    )


def _reply(reply_id: int, message_id: int, content: str = "re") -> Reply:
    return Reply(
        id=reply_id,
        message_id=message_id,
        user_id=1,
        content=content,
        created_at=NOW,
        user_name="alice",
    )


def _task(task_id: int, channel_id: int = 1, thread_id: int = 10) -> Task:
    return Task(
        id=task_id,
        message_id=task_id,
        channel_id=channel_id,
        thread_id=thread_id,
        created_by=1,
        title=f"t{task_id}",
        created_at=NOW,
        updated_at=NOW,
    )


def _frame(event_type: str, **payload: Any) -> dict[str, Any]:
    return {"type": event_type, "event_id": "01J", "ts": NOW.isoformat(), **payload}


def _scoped(thread_id: int, channel_id: int = 1) -> dict[str, Any]:
    return {
        "thread_id": thread_id,
        "channel_id": channel_id,
        "channel_name": "eng",
        "thread_title": f"thread-{thread_id}",
    }


class FakeApi:
    """内存版 ChatApi，记录调用参数"""

    def __init__(self) -> None:
        self.channels = [Channel(id=1, name="eng", created_at=NOW)]
        self.threads = {
            1: [
                Thread(id=11, channel_id=1, title="side", created_by=1, created_at=NOW),
                Thread(id=10, channel_id=1, title="main", created_by=1, created_at=NOW),
            ]
        }
        self.messages: dict[int, list[Message]] = {10: [_message(1, 10), _message(2, 10)], 11: []}
        self.replies: dict[int, list[Reply]] = {1: [_reply(100, 1)]}
        self.tasks: list[Task] = [_task(5)]
        self.read_calls: list[tuple[int, int]] = []
        self.task_calls: list[tuple[int | None, int | None]] = []
        self.frames: list[dict[str, Any]] = []
        self.fail_mark_read = False

    async def list_channels(self) -> list[Channel]:
        return list(self.channels)

    async def list_threads(self, channel_id: int) -> list[Thread]:
        return list(self.threads.get(channel_id, []))

    async def list_messages(self, thread_id: int) -> list[Message]:
        return list(self.messages.get(thread_id, []))

    async def list_replies(self, message_id: int) -> list[Reply]:
        return list(self.replies.get(message_id, []))

    async def list_tasks(
        self,
        status: str | None = None,
        channel_id: int | None = None,
        thread_id: int | None = None,
    ) -> list[Task]:
        self.task_calls.append((channel_id, thread_id))
        return list(self.tasks)

    async def mark_thread_read(self, thread_id: int, last_read_message_id: int) -> None:
        if self.fail_mark_read:
            raise ApiError(500, "INTERNAL_ERROR", "boom")
        self.read_calls.append((thread_id, last_read_message_id))

    async def stream_events(self) -> AsyncIterator[dict[str, Any]]:
        for frame in self.frames:
            yield frame


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest_asyncio.fixture
async def engine(api: FakeApi) -> SyncEngine:
    sync = SyncEngine(api)
    await sync.bootstrap()
    return sync


class TestBootstrapAndFocus:
    """快照加载"""

    async def test_bootstrap_focuses_main_thread(self, engine: SyncEngine, api: FakeApi):
        assert engine.state.selected_channel_id == 1
        assert engine.state.selected_thread_id == 10
        assert [m.id for m in engine.state.messages] == [1, 2]
        assert [t.id for t in engine.state.tasks] == [5]
        assert api.read_calls == [(10, 2)]

    async def test_focus_empty_thread_persists_zero(self, engine: SyncEngine, api: FakeApi):
        await engine.focus_thread(11)
        assert engine.state.messages == []
        assert api.read_calls[-1] == (11, 0)

    async def test_focus_message_loads_replies(self, engine: SyncEngine):
        await engine.focus_message(1)
        assert [r.id for r in engine.state.replies] == [100]
        await engine.focus_message(None)
        assert engine.state.replies == []

    async def test_read_cursor_failure_is_not_fatal(self, engine: SyncEngine, api: FakeApi):
        api.fail_mark_read = True
        await engine.focus_thread(11)
        assert engine.state.selected_thread_id == 11

    async def test_task_scope_filters_request(self, engine: SyncEngine, api: FakeApi):
        await engine.set_task_scope(TaskScope.THREAD)
        assert api.task_calls[-1] == (1, 10)
        await engine.set_task_scope(TaskScope.CHANNEL)
        assert api.task_calls[-1] == (1, None)
        await engine.set_task_scope(TaskScope.ALL)
        assert api.task_calls[-1] == (None, None)

    async def test_thread_focus_refreshes_scoped_tasks(self, engine: SyncEngine, api: FakeApi):
        await engine.set_task_scope(TaskScope.THREAD)
        await engine.focus_thread(11)
        assert api.task_calls[-1] == (1, 11)

    async def test_explicit_filter_independent_of_focus(self, engine: SyncEngine, api: FakeApi):
        await engine.set_task_scope(TaskScope.THREAD, thread_id=11)
        assert api.task_calls[-1] == (None, 11)
        assert engine.state.selected_thread_id == 10
        assert engine.state.task_filter_thread_id == 11

        await engine.apply_event(_frame("task_updated", task=_task(5).model_dump(mode="json")))
        assert api.task_calls[-1] == (None, 11)

    async def test_focus_change_moves_filter(self, engine: SyncEngine, api: FakeApi):
        await engine.set_task_scope(TaskScope.CHANNEL, channel_id=3)
        assert api.task_calls[-1] == (3, None)
        await engine.focus_thread(11)
        assert api.task_calls[-1] == (1, None)
        assert engine.state.task_filter_channel_id == 1

    async def test_all_scope_clears_filter(self, engine: SyncEngine, api: FakeApi):
        await engine.set_task_scope(TaskScope.THREAD)
        await engine.set_task_scope(TaskScope.ALL)
        assert engine.state.task_filter_channel_id is None
        assert engine.state.task_filter_thread_id is None
        calls = len(api.task_calls)
        await engine.focus_thread(11)
        assert len(api.task_calls) == calls


class TestFocusedEvents:
    """聚焦线程内事件"""

    async def test_message_created_appends_and_persists_cursor(
        self, engine: SyncEngine, api: FakeApi
    ):
        await engine.apply_event(
            _frame("message_created", **_scoped(10), message=_message(3, 10).model_dump(mode="json"))
        )
        assert [m.id for m in engine.state.messages] == [1, 2, 3]
        assert api.read_calls[-1] == (10, 3)
        assert engine.state.unread == {}

    async def test_duplicate_message_created_ignored(self, engine: SyncEngine):
        frame = _frame("message_created", **_scoped(10), message=_message(2, 10).model_dump(mode="json"))
        await engine.apply_event(frame)
        assert [m.id for m in engine.state.messages] == [1, 2]

    async def test_message_updated_replaces(self, engine: SyncEngine):
        updated = _message(1, 10, content="edited").model_dump(mode="json")
        await engine.apply_event(_frame("message_updated", **_scoped(10), message=updated))
        assert engine.state.messages[0].content == "edited"

    async def test_message_deleted_clears_selection(self, engine: SyncEngine):
        await engine.focus_message(1)
        await engine.apply_event(_frame("message_deleted", **_scoped(10), message_id=1))
        assert [m.id for m in engine.state.messages] == [2]
        assert engine.state.selected_message_id is None
        assert engine.state.replies == []

    async def test_reply_events_adjust_count_and_panel(self, engine: SyncEngine):
        await engine.focus_message(1)
        reply = _reply(101, 1).model_dump(mode="json")
        await engine.apply_event(_frame("reply_created", **_scoped(10), message_id=1, reply=reply))
        assert engine.state.messages[0].reply_count == 1
        assert [r.id for r in engine.state.replies] == [100, 101]

        edited = _reply(101, 1, content="changed").model_dump(mode="json")
        await engine.apply_event(_frame("reply_updated", **_scoped(10), message_id=1, reply=edited))
        assert engine.state.replies[1].content == "changed"

        await engine.apply_event(_frame("reply_deleted", **_scoped(10), message_id=1, reply_id=101))
        assert engine.state.messages[0].reply_count == 0
        assert [r.id for r in engine.state.replies] == [100]

    async def test_reply_count_never_negative(self, engine: SyncEngine):
        await engine.apply_event(_frame("reply_deleted", **_scoped(10), message_id=2, reply_id=9))
        assert engine.state.messages[1].reply_count == 0

    async def test_thread_created_prepended_for_selected_channel(self, engine: SyncEngine):
        thread = Thread(id=12, channel_id=1, title="new", created_by=1, created_at=NOW)
        await engine.apply_event(
            _frame("thread_created", channel_id=1, thread=thread.model_dump(mode="json"))
        )
        assert engine.state.threads[0].id == 12

        other = Thread(id=20, channel_id=2, title="x", created_by=1, created_at=NOW)
        await engine.apply_event(
            _frame("thread_created", channel_id=2, thread=other.model_dump(mode="json"))
        )
        assert all(t.id != 20 for t in engine.state.threads)

    async def test_channel_created_appended_once(self, engine: SyncEngine):
        channel = Channel(id=2, name="ops", created_at=NOW).model_dump(mode="json")
        await engine.apply_event(_frame("channel_created", channel=channel))
        await engine.apply_event(_frame("channel_created", channel=channel))
        assert [c.name for c in engine.state.channels] == ["eng", "ops"]


class TestUnfocusedActivity:
    """未聚焦线程的未读与活动"""

    async def test_unfocused_message_counts_unread(self, engine: SyncEngine):
        frame = _frame("message_created", **_scoped(11), message=_message(9, 11).model_dump(mode="json"))
        await engine.apply_event(frame)
        await engine.apply_event(
            _frame("reply_created", **_scoped(11), message_id=9, reply=_reply(1, 9).model_dump(mode="json"))
        )
        assert engine.state.unread == {11: 2}
        assert [m.id for m in engine.state.messages] == [1, 2]

    async def test_activity_sorted_by_recency(self, engine: SyncEngine):
        await engine.apply_event(
            _frame("message_created", **_scoped(11), message=_message(9, 11).model_dump(mode="json"))
        )
        await engine.apply_event(
            _frame("message_created", **_scoped(30, 3), message=_message(8, 30).model_dump(mode="json"))
        )
        entries = engine.activity_entries()
        assert [e.thread_id for e in entries] == [30, 11]
        assert entries[1].thread_title == "thread-11"
        assert entries[1].count == 1

    async def test_focus_clears_unread(self, engine: SyncEngine):
        await engine.apply_event(
            _frame("message_created", **_scoped(11), message=_message(9, 11).model_dump(mode="json"))
        )
        await engine.focus_thread(11)
        assert engine.state.unread == {}
        assert engine.activity_entries() == []


class TestBotFilter:
    """TaskBot 消息过滤"""

    async def test_bot_messages_dropped_when_disabled(self, engine: SyncEngine):
        await engine.set_receive_bot_messages(False)
        bot = _message(3, 10, user_name="TaskBot").model_dump(mode="json")
        await engine.apply_event(_frame("message_created", **_scoped(10), message=bot))
        assert [m.id for m in engine.state.messages] == [1, 2]

        unfocused = _message(4, 11, user_name="TaskBot").model_dump(mode="json")
        await engine.apply_event(_frame("message_created", **_scoped(11), message=unfocused))
        assert engine.state.unread == {}

    async def test_disabling_deselects_bot_message(self, engine: SyncEngine, api: FakeApi):
        bot = _message(3, 10, user_name="TaskBot").model_dump(mode="json")
        await engine.apply_event(_frame("message_created", **_scoped(10), message=bot))
        await engine.focus_message(3)
        await engine.set_receive_bot_messages(False)
        assert engine.state.selected_message_id is None


class TestTaskEvents:
    """任务事件"""

    async def test_task_created_refetches(self, engine: SyncEngine, api: FakeApi):
        api.tasks = [_task(6), _task(5)]
        await engine.apply_event(_frame("task_created", task=_task(6).model_dump(mode="json")))
        assert [t.id for t in engine.state.tasks] == [6, 5]

    async def test_task_deleted_removes_and_refetches(self, engine: SyncEngine, api: FakeApi):
        calls = len(api.task_calls)
        api.tasks = []
        await engine.apply_event(
            _frame("task_deleted", task_id=5, message_id=5, channel_id=1, thread_id=10)
        )
        assert engine.state.tasks == []
        assert len(api.task_calls) == calls + 1


class TestIgnoredFrames:
    """被忽略的帧"""

    async def test_connected_and_unknown_ignored(self, engine: SyncEngine):
        before = engine.state.model_copy(deep=True)
        await engine.apply_event({"type": "connected"})
        await engine.apply_event({"type": "presence_changed"})
        await engine.apply_event({})
        assert engine.state == before

    async def test_malformed_payload_skipped(self, engine: SyncEngine):
        await engine.apply_event(_frame("message_created", thread_id=10))
        assert [m.id for m in engine.state.messages] == [1, 2]

    async def test_run_consumes_stream(self, engine: SyncEngine, api: FakeApi):
        api.frames = [
            {"type": "connected"},
            _frame("message_created", **_scoped(10), message=_message(3, 10).model_dump(mode="json")),
            _frame("message_deleted", **_scoped(10), message_id=1),
        ]
        await engine.run()
        assert [m.id for m in engine.state.messages] == [2, 3]
