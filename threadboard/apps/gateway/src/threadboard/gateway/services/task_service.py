"""TaskService -- 看板任务创建/更新/删除/查询业务逻辑

看板直接创建任务时同样先写一条来源消息，保证每个任务恰有一条来源消息；
随后由 TaskBot 发一条通知消息。校验与三次写入在同一持锁事务内完成。
"""

from datetime import timedelta

import structlog
from threadboard.core.config import BOT_MESSAGE_MAX_LENGTH
from threadboard.core.exceptions import (
    InternalError,
    InvalidRequestError,
    NotFoundError,
)
from threadboard.core.models import (
    AuthenticatedUser,
    EventType,
    MessagePayload,
    Task,
    TaskDeletedPayload,
    TaskEventPayload,
    TaskStatus,
)
from threadboard.core.parser import render_task_bot_message

from .base import ServiceBase, toggle_checklist_or_raise

log = structlog.get_logger()


def parse_task_status(value: str | None) -> TaskStatus | None:
    """解析状态字符串

    Raises:
        InvalidRequestError: 不是 open/doing/done 之一
    """
    if value is None:
        return None
    try:
        return TaskStatus(value)
    except ValueError:
        raise InvalidRequestError(
            f"Invalid task status: {value}",
            fields={"status": "must be one of open, doing, done"},
        ) from None


class TaskService(ServiceBase):
    """任务业务服务"""

    async def list_tasks(
        self,
        status: TaskStatus | None = None,
        channel_id: int | None = None,
        thread_id: int | None = None,
    ) -> list[Task]:
        """查询任务列表

        done 任务仅在保留窗口内可见（默认列表与 status=done 均适用）。
        """
        cutoff = self._clock() - timedelta(days=self._config.done_task_retention_days)
        return await self._stores.task_store.list_tasks(
            done_cutoff=cutoff,
            status=status,
            channel_id=channel_id,
            thread_id=thread_id,
        )

    async def get_task(self, task_id: int) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    async def create_task(
        self,
        user: AuthenticatedUser,
        thread_id: int,
        title: str,
        note: str | None = None,
        bot_message: str | None = None,
    ) -> Task:
        """从看板直接创建任务

        依次广播 message_created（来源消息）、task_created、message_created（TaskBot）。

        Raises:
            NotFoundError: 线程不存在
            InvalidRequestError: 标题 trim 后为空或通知模板过长
        """
        title = title.strip()
        note = (note or "").strip()
        message_content = f"{title}\n{note}" if note else title

        now = self._clock()
        async with self._stores.transaction():
            meta = await self._stores.channel_store.get_thread_meta(thread_id)
            if meta is None:
                raise NotFoundError("thread", thread_id)
            if not title:
                raise InvalidRequestError("Title cannot be empty.", fields={"title": "required"})
            if bot_message is not None and len(bot_message) > BOT_MESSAGE_MAX_LENGTH:
                raise InvalidRequestError(
                    "Bot message template is too long.",
                    fields={"bot_message": f"at most {BOT_MESSAGE_MAX_LENGTH} characters"},
                )

            message_id = await self._stores.message_store.create_message(
                thread_id=thread_id,
                user_id=user.id,
                content=message_content,
                created_at=now,
            )
            await self._stores.task_store.insert_task(
                message_id=message_id,
                channel_id=meta.channel_id,
                thread_id=thread_id,
                created_by=user.id,
                title=title,
                note=note,
                now=now,
            )
            bot = await self._stores.user_store.get_or_create_task_bot(now)
            bot_message_id = await self._stores.message_store.create_message(
                thread_id=thread_id,
                user_id=bot.id,
                content=render_task_bot_message(bot_message, title, user.name),
                created_at=now,
            )

            message = await self._stores.message_store.get_message(message_id)
            task = await self._stores.task_store.get_task_by_message(message_id)
            bot_post = await self._stores.message_store.get_message(bot_message_id)
            if message is None or task is None or bot_post is None:
                raise InternalError("Failed to create task.")

        log.info("task_created", task_id=task.id, message_id=message_id, source="dashboard")
        await self._emit(
            EventType.MESSAGE_CREATED,
            MessagePayload(**meta.model_dump(), message=message),
        )
        await self._emit(EventType.TASK_CREATED, TaskEventPayload(task=task))
        await self._emit(
            EventType.MESSAGE_CREATED,
            MessagePayload(**meta.model_dump(), message=bot_post),
        )
        return task

    async def update_task(
        self,
        task_id: int,
        status: str | None = None,
        title: str | None = None,
        note: str | None = None,
    ) -> Task:
        """更新任务状态/标题/备注，任意状态之间均可流转

        Raises:
            InvalidRequestError: 无任何字段、标题为空或状态非法
            NotFoundError: 任务不存在
        """
        if status is None and title is None and note is None:
            raise InvalidRequestError("At least one field is required.")
        if title is not None:
            title = title.strip()
            if not title:
                raise InvalidRequestError("Title cannot be empty.", fields={"title": "required"})
        next_status = parse_task_status(status)

        async with self._stores.transaction():
            await self.get_task(task_id)
            await self._stores.task_store.update_task(
                task_id,
                self._clock(),
                title=title,
                note=note,
                status=next_status,
            )
            task = await self._reload_task(task_id)
        return await self._emit_task_updated(task)

    async def toggle_task_checklist(self, task_id: int, ordinal: int, checked: bool) -> Task:
        """勾选任务备注中的 checklist 项，同时刷新 updated_at"""
        async with self._stores.transaction():
            existing = await self.get_task(task_id)
            next_note = toggle_checklist_or_raise(existing.note, ordinal, checked)
            await self._stores.task_store.update_task(task_id, self._clock(), note=next_note)
            task = await self._reload_task(task_id)
        return await self._emit_task_updated(task)

    async def delete_task(self, task_id: int) -> None:
        """只删除任务本身，来源消息保留"""
        async with self._stores.transaction():
            task = await self.get_task(task_id)
            await self._stores.task_store.delete_task(task_id)

        log.info("task_deleted", task_id=task_id)
        await self._emit(
            EventType.TASK_DELETED,
            TaskDeletedPayload(
                task_id=task.id,
                message_id=task.message_id,
                channel_id=task.channel_id,
                thread_id=task.thread_id,
            ),
        )

    async def _reload_task(self, task_id: int) -> Task:
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise InternalError("Failed to update task.")
        return task

    async def _emit_task_updated(self, task: Task) -> Task:
        log.info("task_updated", task_id=task.id, status=task.status.value)
        await self._emit(EventType.TASK_UPDATED, TaskEventPayload(task=task))
        return task
