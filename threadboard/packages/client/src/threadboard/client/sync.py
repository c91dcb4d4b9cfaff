"""SyncEngine -- 客户端增量同步

订阅事件流，把每个领域事件应用到本地 ViewState：
- 聚焦线程内的事件直接增删改本地列表
- 其他线程的消息/回复事件累加未读计数并记录活动
- 任务事件触发按当前范围重新拉取任务列表

connected 帧与未知类型被忽略；字段缺失或类型错误的帧被跳过。
"""

from collections.abc import Awaitable, Callable
from typing import Any

import structlog
from pydantic import ValidationError
from threadboard.core.config import TASK_BOT_NAME
from threadboard.core.models import (
    ChannelCreatedPayload,
    EventType,
    Message,
    MessageDeletedPayload,
    MessagePayload,
    ReplyDeletedPayload,
    ReplyPayload,
    TaskDeletedPayload,
    ThreadCreatedPayload,
)
from threadboard.core.models.payloads import ThreadScopedPayload

from .api import ChatApi
from .exceptions import ApiError
from .state import ActivityEntry, TaskScope, ThreadActivity, ViewState

log = structlog.get_logger()


class SyncEngine:
    """客户端同步引擎

    Args:
        api: ChatApi 实现
        receive_bot_messages: False 时忽略 TaskBot 发出的 message_created
    """

    def __init__(self, api: ChatApi, receive_bot_messages: bool = True) -> None:
        self._api = api
        self.state = ViewState()
        self.receive_bot_messages = receive_bot_messages
        self._activity_seq = 0
        self._handlers: dict[EventType, Callable[[dict[str, Any]], Awaitable[None]]] = {
            EventType.CHANNEL_CREATED: self._on_channel_created,
            EventType.THREAD_CREATED: self._on_thread_created,
            EventType.MESSAGE_CREATED: self._on_message_created,
            EventType.MESSAGE_UPDATED: self._on_message_updated,
            EventType.MESSAGE_DELETED: self._on_message_deleted,
            EventType.REPLY_CREATED: self._on_reply_created,
            EventType.REPLY_UPDATED: self._on_reply_updated,
            EventType.REPLY_DELETED: self._on_reply_deleted,
            EventType.TASK_CREATED: self._on_task_changed,
            EventType.TASK_UPDATED: self._on_task_changed,
            EventType.TASK_DELETED: self._on_task_deleted,
        }

    # ---- snapshots / focus ----

    async def bootstrap(self) -> None:
        """拉取频道列表与任务，默认聚焦第一个频道"""
        self.state.channels = await self._api.list_channels()
        if self.state.selected_channel_id is None and self.state.channels:
            await self.focus_channel(self.state.channels[0].id)
        await self.refresh_tasks()

    async def focus_channel(self, channel_id: int) -> None:
        """聚焦频道：加载线程并聚焦 main 线程（没有则取最新线程）"""
        self.state.selected_channel_id = channel_id
        self.state.selected_thread_id = None
        self.state.threads = await self._api.list_threads(channel_id)

        if not self.state.threads:
            self.state.messages = []
            self.state.selected_message_id = None
            self.state.replies = []
            await self._follow_focus()
            return

        main = next((t for t in self.state.threads if t.title.lower() == "main"), None)
        await self.focus_thread((main or self.state.threads[0]).id)

    async def focus_thread(self, thread_id: int) -> None:
        """聚焦线程：加载消息、清空消息选择、清除未读并持久化已读游标"""
        self.state.selected_thread_id = thread_id
        self.state.selected_message_id = None
        self.state.replies = []
        self.state.messages = await self._api.list_messages(thread_id)
        self._clear_thread_activity(thread_id)
        await self._persist_read_cursor()
        await self._follow_focus()

    async def focus_message(self, message_id: int | None) -> None:
        """打开（或关闭）某条消息的回复面板"""
        self.state.selected_message_id = message_id
        if message_id is None:
            self.state.replies = []
            return
        self.state.replies = await self._api.list_replies(message_id)

    async def set_task_scope(
        self,
        scope: TaskScope,
        channel_id: int | None = None,
        thread_id: int | None = None,
    ) -> None:
        """切换看板范围

        Args:
            scope: all / channel / thread
            channel_id: 指定过滤频道，缺省取当前聚焦频道
            thread_id: 指定过滤线程，缺省取当前聚焦线程；显式给出线程时频道只按 channel_id

        指定的 id 会一直保留，直到下一次 focus_channel / focus_thread 把过滤器拉回聚焦位置。
        """
        state = self.state
        state.task_scope = scope
        if scope == TaskScope.ALL:
            state.task_filter_channel_id = None
            state.task_filter_thread_id = None
        elif scope == TaskScope.CHANNEL:
            state.task_filter_channel_id = (
                channel_id if channel_id is not None else state.selected_channel_id
            )
            state.task_filter_thread_id = None
        elif thread_id is not None:
            state.task_filter_channel_id = channel_id
            state.task_filter_thread_id = thread_id
        else:
            state.task_filter_channel_id = (
                channel_id if channel_id is not None else state.selected_channel_id
            )
            state.task_filter_thread_id = state.selected_thread_id
        await self.refresh_tasks()

    async def set_receive_bot_messages(self, enabled: bool) -> None:
        """关闭时若当前选中的是 TaskBot 消息，则取消选择"""
        self.receive_bot_messages = enabled
        if enabled or self.state.selected_message_id is None:
            return
        selected = self._find_message(self.state.selected_message_id)
        if selected is not None and _is_bot_message(selected):
            await self.focus_message(None)

    async def refresh_tasks(self) -> None:
        """按看板过滤器重新拉取任务"""
        self.state.tasks = await self._api.list_tasks(
            channel_id=self.state.task_filter_channel_id,
            thread_id=self.state.task_filter_thread_id,
        )

    def activity_entries(self) -> list[ActivityEntry]:
        """有未读的线程，按最近活动倒序"""
        active = sorted(
            (a for a in self.state.activity.values() if self.state.unread.get(a.thread_id, 0) > 0),
            key=lambda a: a.seq,
            reverse=True,
        )
        return [
            ActivityEntry(
                thread_id=a.thread_id,
                count=self.state.unread[a.thread_id],
                channel_id=a.channel_id,
                channel_name=a.channel_name,
                thread_title=a.thread_title,
            )
            for a in active
        ]

    # ---- stream ----

    async def run(self) -> None:
        """消费事件流直到连接结束"""
        async for frame in self._api.stream_events():
            await self.apply_event(frame)

    async def apply_event(self, frame: dict[str, Any]) -> None:
        """把一帧事件应用到本地状态"""
        try:
            event_type = EventType(frame.get("type"))
        except ValueError:
            # connected 帧或未知类型
            return

        try:
            await self._handlers[event_type](frame)
        except ValidationError as e:
            log.warning(
                "malformed_event_skipped",
                event_type=event_type.value,
                errors=e.error_count(),
            )

    # ---- handlers ----

    async def _on_channel_created(self, frame: dict[str, Any]) -> None:
        channel = ChannelCreatedPayload.model_validate(frame).channel
        if all(c.id != channel.id for c in self.state.channels):
            self.state.channels.append(channel)

    async def _on_thread_created(self, frame: dict[str, Any]) -> None:
        payload = ThreadCreatedPayload.model_validate(frame)
        if payload.channel_id != self.state.selected_channel_id:
            return
        if all(t.id != payload.thread.id for t in self.state.threads):
            self.state.threads.insert(0, payload.thread)

    async def _on_message_created(self, frame: dict[str, Any]) -> None:
        payload = MessagePayload.model_validate(frame)
        if not self.receive_bot_messages and _is_bot_message(payload.message):
            return
        if not self._is_focused(payload.thread_id):
            self._mark_thread_activity(payload)
            return
        if self._find_message(payload.message.id) is None:
            self.state.messages.append(payload.message)
            await self._persist_read_cursor()

    async def _on_message_updated(self, frame: dict[str, Any]) -> None:
        payload = MessagePayload.model_validate(frame)
        if not self._is_focused(payload.thread_id):
            self._mark_thread_activity(payload)
            return
        self.state.messages = [
            payload.message if m.id == payload.message.id else m for m in self.state.messages
        ]

    async def _on_message_deleted(self, frame: dict[str, Any]) -> None:
        payload = MessageDeletedPayload.model_validate(frame)
        if not self._is_focused(payload.thread_id):
            self._mark_thread_activity(payload)
            return
        self.state.messages = [m for m in self.state.messages if m.id != payload.message_id]
        if self.state.selected_message_id == payload.message_id:
            self.state.selected_message_id = None
            self.state.replies = []

    async def _on_reply_created(self, frame: dict[str, Any]) -> None:
        payload = ReplyPayload.model_validate(frame)
        if not self._is_focused(payload.thread_id):
            self._mark_thread_activity(payload)
            return
        self._adjust_reply_count(payload.message_id, 1)
        if self.state.selected_message_id == payload.message_id and all(
            r.id != payload.reply.id for r in self.state.replies
        ):
            self.state.replies.append(payload.reply)

    async def _on_reply_updated(self, frame: dict[str, Any]) -> None:
        payload = ReplyPayload.model_validate(frame)
        if not self._is_focused(payload.thread_id):
            self._mark_thread_activity(payload)
            return
        if self.state.selected_message_id == payload.message_id:
            self.state.replies = [
                payload.reply if r.id == payload.reply.id else r for r in self.state.replies
            ]

    async def _on_reply_deleted(self, frame: dict[str, Any]) -> None:
        payload = ReplyDeletedPayload.model_validate(frame)
        if not self._is_focused(payload.thread_id):
            self._mark_thread_activity(payload)
            return
        self._adjust_reply_count(payload.message_id, -1)
        if self.state.selected_message_id == payload.message_id:
            self.state.replies = [r for r in self.state.replies if r.id != payload.reply_id]

    async def _on_task_changed(self, frame: dict[str, Any]) -> None:
        await self.refresh_tasks()

    async def _on_task_deleted(self, frame: dict[str, Any]) -> None:
        payload = TaskDeletedPayload.model_validate(frame)
        self.state.tasks = [t for t in self.state.tasks if t.id != payload.task_id]
        await self.refresh_tasks()

    # ---- helpers ----

    async def _follow_focus(self) -> None:
        # 非 all 范围下，看板过滤器随聚焦位置移动
        if self.state.task_scope != TaskScope.ALL:
            await self.set_task_scope(self.state.task_scope)

    def _is_focused(self, thread_id: int) -> bool:
        return self.state.selected_thread_id is not None and thread_id == self.state.selected_thread_id

    def _find_message(self, message_id: int) -> Message | None:
        return next((m for m in self.state.messages if m.id == message_id), None)

    def _adjust_reply_count(self, message_id: int, delta: int) -> None:
        for message in self.state.messages:
            if message.id == message_id:
                message.reply_count = max(0, message.reply_count + delta)

    def _mark_thread_activity(self, payload: ThreadScopedPayload) -> None:
        self._activity_seq += 1
        thread_id = payload.thread_id
        self.state.unread[thread_id] = self.state.unread.get(thread_id, 0) + 1
        self.state.activity[thread_id] = ThreadActivity(
            thread_id=thread_id,
            channel_id=payload.channel_id,
            channel_name=payload.channel_name,
            thread_title=payload.thread_title,
            seq=self._activity_seq,
        )

    def _clear_thread_activity(self, thread_id: int) -> None:
        self.state.unread.pop(thread_id, None)
        self.state.activity.pop(thread_id, None)

    async def _persist_read_cursor(self) -> None:
        """以最后一条已加载消息 ID（为空时为 0）更新已读游标"""
        thread_id = self.state.selected_thread_id
        if thread_id is None:
            return
        last_id = self.state.messages[-1].id if self.state.messages else 0
        try:
            await self._api.mark_thread_read(thread_id, last_id)
        except ApiError as e:
            log.warning("read_cursor_persist_failed", thread_id=thread_id, status=e.status_code)


def _is_bot_message(message: Message) -> bool:
    return message.user_name == TASK_BOT_NAME
