"""ChatService -- 频道/线程/消息/回复业务逻辑

消息与回复的创建流程：
1. trim 内容并检测 `:task` 标记
2. 持写锁的单事务内校验目标、写入消息（回复）与可选的任务（INSERT OR IGNORE）并回读
3. 提交后依次广播 message_created / reply_created，任务真正插入时再广播 task_created
"""

from datetime import datetime
from typing import NamedTuple

import aiosqlite
import structlog
from threadboard.core.config import DEFAULT_CHANNEL_NAME
from threadboard.core.exceptions import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidRequestError,
    NotFoundError,
)
from threadboard.core.models import (
    AuthenticatedUser,
    Channel,
    ChannelCreatedPayload,
    EventType,
    Message,
    MessageDeletedPayload,
    MessagePayload,
    Reply,
    ReplyDeletedPayload,
    ReplyPayload,
    Task,
    TaskEventPayload,
    Thread,
    ThreadCreatedPayload,
    ThreadMeta,
    ThreadRead,
)
from threadboard.core.parser import (
    TaskPayload,
    has_task_flag,
    parse_task_payload,
    strip_task_flag,
)
from threadboard.core.store import create_channel_with_main_thread, delete_message_cascade

from .base import ServiceBase, toggle_checklist_or_raise

log = structlog.get_logger()


class ExtractedContent(NamedTuple):
    """待存储的内容与可选的任务字段"""

    content: str
    task: TaskPayload | None


def extract_task(raw_content: str, create_task: bool = False) -> ExtractedContent:
    """从消息/回复内容中提取任务

    存储内容为剥离标记后的文本（为空时保留原文）。
    显式请求创建任务时从存储内容解析 title/note，否则从原文解析。

    Args:
        raw_content: 已 trim 的原始内容
        create_task: 调用方是否显式请求创建任务
    """
    flagged = has_task_flag(raw_content)
    sanitized = strip_task_flag(raw_content) if flagged else raw_content
    content = sanitized or raw_content

    if not (create_task or flagged):
        return ExtractedContent(content=content, task=None)

    payload = parse_task_payload(content if create_task else raw_content)
    if payload.title is None:
        return ExtractedContent(content=content, task=None)
    return ExtractedContent(content=content, task=payload)


class ChatService(ServiceBase):
    """聊天业务服务"""

    # ---- channels / threads ----

    async def list_channels(self) -> list[Channel]:
        return await self._stores.channel_store.list_channels()

    async def create_channel(self, user: AuthenticatedUser, name: str) -> Channel:
        """创建频道及其 main 线程

        Raises:
            InvalidRequestError: 名称 trim 后为空
            ConflictError: 频道名已存在
        """
        name = name.strip()
        if not name:
            raise InvalidRequestError("Channel name cannot be empty.", fields={"name": "required"})

        try:
            async with self._stores.transaction():
                channel_id, thread_id = await create_channel_with_main_thread(
                    self._stores.channel_store,
                    name=name,
                    created_by=user.id,
                    now=self._clock(),
                )
                channel = await self._stores.channel_store.get_channel(channel_id)
                thread = await self._stores.channel_store.get_thread(thread_id)
                if channel is None or thread is None:
                    raise InternalError("Failed to create channel.")
        except aiosqlite.IntegrityError as e:
            raise ConflictError("Channel name already exists.") from e

        log.info("channel_created", channel_id=channel_id, name=name, user_id=user.id)
        await self._emit(EventType.CHANNEL_CREATED, ChannelCreatedPayload(channel=channel))
        await self._emit(
            EventType.THREAD_CREATED,
            ThreadCreatedPayload(channel_id=channel_id, thread=thread),
        )
        return channel

    async def list_threads(self, channel_id: int) -> list[Thread]:
        if await self._stores.channel_store.get_channel(channel_id) is None:
            raise NotFoundError("channel", channel_id)
        return await self._stores.channel_store.list_threads(channel_id)

    async def create_thread(
        self,
        user: AuthenticatedUser,
        channel_id: int,
        title: str,
    ) -> Thread:
        title = title.strip()

        async with self._stores.transaction():
            if await self._stores.channel_store.get_channel(channel_id) is None:
                raise NotFoundError("channel", channel_id)
            if not title:
                raise InvalidRequestError(
                    "Thread title cannot be empty.", fields={"title": "required"}
                )
            thread_id = await self._stores.channel_store.create_thread(
                channel_id=channel_id,
                title=title,
                created_by=user.id,
                created_at=self._clock(),
            )
            thread = await self._stores.channel_store.get_thread(thread_id)
            if thread is None:
                raise InternalError("Failed to create thread.")

        log.info("thread_created", thread_id=thread_id, channel_id=channel_id)
        await self._emit(
            EventType.THREAD_CREATED,
            ThreadCreatedPayload(channel_id=channel_id, thread=thread),
        )
        return thread

    async def seed_default_workspace(self) -> Channel | None:
        """无任何频道时创建 general 频道（owner 为 TaskBot），不广播事件"""
        now = self._clock()
        async with self._stores.transaction():
            if await self._stores.channel_store.count_channels() > 0:
                return None
            bot = await self._stores.user_store.get_or_create_task_bot(now)
            channel_id, _ = await create_channel_with_main_thread(
                self._stores.channel_store,
                name=DEFAULT_CHANNEL_NAME,
                created_by=bot.id,
                now=now,
            )
            channel = await self._stores.channel_store.get_channel(channel_id)

        log.info("default_channel_seeded", channel_id=channel_id)
        return channel

    # ---- messages ----

    async def list_messages(self, thread_id: int) -> list[Message]:
        await self._require_thread_meta(thread_id)
        return await self._stores.message_store.list_messages(thread_id)

    async def post_message(
        self,
        user: AuthenticatedUser,
        thread_id: int,
        content: str,
        create_task: bool = False,
        idempotency_key: str | None = None,
    ) -> tuple[Message, bool]:
        """发送消息，按需派生任务

        幂等键按 (发送者, 线程) 隔离，且只在线程存在时查找。

        Returns:
            (message, created) -- created=False 表示幂等键命中，未写入也未广播

        Raises:
            NotFoundError: 线程不存在
            InvalidRequestError: 内容 trim 后为空
        """
        raw_content = content.strip()
        task: Task | None = None

        async with self._stores.transaction():
            meta = await self._require_thread_meta(thread_id)
            if idempotency_key:
                existing = await self._stores.message_store.get_message_by_idempotency_key(
                    user.id, thread_id, idempotency_key
                )
                if existing is not None:
                    return existing, False
            if not raw_content:
                raise InvalidRequestError(
                    "Message cannot be empty.", fields={"content": "required"}
                )

            extracted = extract_task(raw_content, create_task)
            now = self._clock()
            message_id = await self._stores.message_store.create_message(
                thread_id=thread_id,
                user_id=user.id,
                content=extracted.content,
                created_at=now,
                idempotency_key=idempotency_key,
            )
            if extracted.task is not None:
                task = await self._insert_derived_task(
                    user, meta, message_id, extracted.task, now
                )
            message = await self._stores.message_store.get_message(message_id)
            if message is None:
                raise InternalError("Failed to create message.")

        log.info(
            "message_created",
            message_id=message_id,
            thread_id=thread_id,
            task_inserted=task is not None,
        )
        await self._emit(
            EventType.MESSAGE_CREATED,
            MessagePayload(**meta.model_dump(), message=message),
        )
        if task is not None:
            await self._emit_task_created(task)
        return message, True

    async def edit_message(
        self,
        user: AuthenticatedUser,
        message_id: int,
        content: str,
    ) -> Message:
        next_content = content.strip()

        async with self._stores.transaction():
            existing = await self._require_message(message_id)
            if existing.user_id != user.id:
                raise ForbiddenError("You can edit only your own messages.")
            if not next_content:
                raise InvalidRequestError(
                    "Message cannot be empty.", fields={"content": "required"}
                )
            await self._stores.message_store.update_message_content(message_id, next_content)
            message, meta = await self._reload_message(message_id)

        await self._emit(
            EventType.MESSAGE_UPDATED,
            MessagePayload(**meta.model_dump(), message=message),
        )
        return message

    async def delete_message(self, user: AuthenticatedUser, message_id: int) -> None:
        """删除消息，级联删除回复与关联任务"""
        async with self._stores.transaction():
            existing = await self._require_message(message_id)
            if existing.user_id != user.id:
                raise ForbiddenError("You can delete only your own messages.")
            meta = await self._require_thread_meta(existing.thread_id)
            await delete_message_cascade(
                self._stores.message_store,
                self._stores.task_store,
                message_id,
            )

        log.info("message_deleted", message_id=message_id, thread_id=existing.thread_id)
        await self._emit(
            EventType.MESSAGE_DELETED,
            MessageDeletedPayload(**meta.model_dump(), message_id=message_id),
        )

    async def toggle_message_checklist(
        self,
        message_id: int,
        ordinal: int,
        checked: bool,
    ) -> Message:
        """勾选消息中的 checklist 项

        Raises:
            NotFoundError: 消息不存在、ordinal 越界或目标项已处于期望状态
        """
        async with self._stores.transaction():
            existing = await self._require_message(message_id)
            next_content = toggle_checklist_or_raise(existing.content, ordinal, checked)
            await self._stores.message_store.update_message_content(message_id, next_content)
            message, meta = await self._reload_message(message_id)

        await self._emit(
            EventType.MESSAGE_UPDATED,
            MessagePayload(**meta.model_dump(), message=message),
        )
        return message

    # ---- replies ----

    async def list_replies(self, message_id: int) -> list[Reply]:
        await self._require_message(message_id)
        return await self._stores.message_store.list_replies(message_id)

    async def post_reply(
        self,
        user: AuthenticatedUser,
        message_id: int,
        content: str,
        create_task: bool = False,
    ) -> Reply:
        """回复消息；回复派生的任务关联到父消息，同一父消息至多一个任务"""
        raw_content = content.strip()
        task: Task | None = None

        async with self._stores.transaction():
            parent = await self._require_message(message_id)
            if not raw_content:
                raise InvalidRequestError("Reply cannot be empty.", fields={"content": "required"})
            meta = await self._require_thread_meta(parent.thread_id)

            extracted = extract_task(raw_content, create_task)
            now = self._clock()
            reply_id = await self._stores.message_store.create_reply(
                message_id=message_id,
                user_id=user.id,
                content=extracted.content,
                created_at=now,
            )
            if extracted.task is not None:
                task = await self._insert_derived_task(
                    user, meta, message_id, extracted.task, now
                )
            reply = await self._stores.message_store.get_reply(reply_id)
            if reply is None:
                raise InternalError("Failed to create reply.")

        log.info(
            "reply_created",
            reply_id=reply_id,
            message_id=message_id,
            task_inserted=task is not None,
        )
        await self._emit(
            EventType.REPLY_CREATED,
            ReplyPayload(**meta.model_dump(), message_id=message_id, reply=reply),
        )
        if task is not None:
            await self._emit_task_created(task)
        return reply

    async def edit_reply(
        self,
        user: AuthenticatedUser,
        reply_id: int,
        content: str,
    ) -> Reply:
        next_content = content.strip()

        async with self._stores.transaction():
            existing = await self._require_reply(reply_id)
            if existing.user_id != user.id:
                raise ForbiddenError("You can edit only your own replies.")
            if not next_content:
                raise InvalidRequestError("Reply cannot be empty.", fields={"content": "required"})
            await self._stores.message_store.update_reply_content(reply_id, next_content)
            reply, meta = await self._reload_reply(reply_id)

        await self._emit(
            EventType.REPLY_UPDATED,
            ReplyPayload(**meta.model_dump(), message_id=reply.message_id, reply=reply),
        )
        return reply

    async def delete_reply(self, user: AuthenticatedUser, reply_id: int) -> None:
        async with self._stores.transaction():
            existing = await self._require_reply(reply_id)
            if existing.user_id != user.id:
                raise ForbiddenError("You can delete only your own replies.")
            parent = await self._require_message(existing.message_id)
            meta = await self._require_thread_meta(parent.thread_id)
            await self._stores.message_store.delete_reply(reply_id)

        log.info("reply_deleted", reply_id=reply_id, message_id=existing.message_id)
        await self._emit(
            EventType.REPLY_DELETED,
            ReplyDeletedPayload(
                **meta.model_dump(),
                message_id=existing.message_id,
                reply_id=reply_id,
            ),
        )

    async def toggle_reply_checklist(
        self,
        reply_id: int,
        ordinal: int,
        checked: bool,
    ) -> Reply:
        async with self._stores.transaction():
            existing = await self._require_reply(reply_id)
            next_content = toggle_checklist_or_raise(existing.content, ordinal, checked)
            await self._stores.message_store.update_reply_content(reply_id, next_content)
            reply, meta = await self._reload_reply(reply_id)

        await self._emit(
            EventType.REPLY_UPDATED,
            ReplyPayload(**meta.model_dump(), message_id=reply.message_id, reply=reply),
        )
        return reply

    # ---- read cursors ----

    async def mark_thread_read(
        self,
        user: AuthenticatedUser,
        thread_id: int,
        last_read_message_id: int,
    ) -> ThreadRead:
        """更新调用者在该线程的已读游标"""
        now = self._clock()
        async with self._stores.transaction():
            await self._require_thread_meta(thread_id)
            if last_read_message_id < 0:
                raise InvalidRequestError(
                    "last_read_message_id must be non-negative.",
                    fields={"last_read_message_id": "invalid"},
                )
            await self._stores.message_store.upsert_thread_read(
                user_id=user.id,
                thread_id=thread_id,
                last_read_message_id=last_read_message_id,
                updated_at=now,
            )
        return ThreadRead(
            user_id=user.id,
            thread_id=thread_id,
            last_read_message_id=last_read_message_id,
            updated_at=now,
        )

    # ---- helpers ----

    async def _require_thread_meta(self, thread_id: int) -> ThreadMeta:
        meta = await self._stores.channel_store.get_thread_meta(thread_id)
        if meta is None:
            raise NotFoundError("thread", thread_id)
        return meta

    async def _require_message(self, message_id: int) -> Message:
        message = await self._stores.message_store.get_message(message_id)
        if message is None:
            raise NotFoundError("message", message_id)
        return message

    async def _require_reply(self, reply_id: int) -> Reply:
        reply = await self._stores.message_store.get_reply(reply_id)
        if reply is None:
            raise NotFoundError("reply", reply_id)
        return reply

    async def _reload_message(self, message_id: int) -> tuple[Message, ThreadMeta]:
        message = await self._stores.message_store.get_message(message_id)
        if message is None:
            raise InternalError("Failed to update message.")
        return message, await self._require_thread_meta(message.thread_id)

    async def _reload_reply(self, reply_id: int) -> tuple[Reply, ThreadMeta]:
        reply = await self._stores.message_store.get_reply(reply_id)
        if reply is None:
            raise InternalError("Failed to update reply.")
        parent = await self._require_message(reply.message_id)
        return reply, await self._require_thread_meta(parent.thread_id)

    async def _insert_derived_task(
        self,
        user: AuthenticatedUser,
        meta: ThreadMeta,
        message_id: int,
        payload: TaskPayload,
        now: datetime,
    ) -> Task | None:
        """事务内插入派生任务；来源消息已有任务时返回 None"""
        inserted = await self._stores.task_store.insert_task(
            message_id=message_id,
            channel_id=meta.channel_id,
            thread_id=meta.thread_id,
            created_by=user.id,
            title=payload.title,
            note=payload.note,
            now=now,
            ignore_duplicate=True,
        )
        if not inserted:
            return None
        task = await self._stores.task_store.get_task_by_message(message_id)
        if task is None:
            raise InternalError("Failed to create task.")
        return task

    async def _emit_task_created(self, task: Task) -> None:
        log.info("task_created", task_id=task.id, message_id=task.message_id)
        await self._emit(EventType.TASK_CREATED, TaskEventPayload(task=task))
