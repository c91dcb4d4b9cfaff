"""Store Protocol 接口定义

使用 Python Protocol 实现结构化子类型（duck typing），
服务层只依赖这些接口，测试可替换为内存实现。
"""

from datetime import datetime
from typing import Protocol

from ..models.chat import Channel, Thread, ThreadMeta
from ..models.enums import TaskStatus
from ..models.message import Message, Reply, ThreadRead
from ..models.task import Task
from ..models.user import Session, User


class UserStore(Protocol):
    """User / Session 存储接口"""

    async def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        created_at: datetime,
    ) -> int:
        """创建用户（邮箱唯一）"""
        ...

    async def get_user(self, user_id: int) -> User | None: ...

    async def get_credentials(self, email: str) -> tuple[User, str] | None:
        """按邮箱查询用户与凭证哈希"""
        ...

    async def get_or_create_task_bot(self, now: datetime) -> User: ...

    async def create_session(self, session: Session) -> None: ...

    async def get_session(self, session_id: str) -> Session | None: ...

    async def extend_session(self, session_id: str, expires_at: datetime) -> None: ...

    async def revoke_session(self, session_id: str, revoked_at: datetime) -> None: ...

    async def purge_sessions(self, now: datetime) -> int: ...


class ChannelStore(Protocol):
    """Channel / Thread 存储接口 -- 线程不可删除"""

    async def create_channel(self, name: str, created_at: datetime) -> int: ...

    async def get_channel(self, channel_id: int) -> Channel | None: ...

    async def list_channels(self) -> list[Channel]: ...

    async def count_channels(self) -> int: ...

    async def create_thread(
        self,
        channel_id: int,
        title: str,
        created_by: int,
        created_at: datetime,
    ) -> int: ...

    async def get_thread(self, thread_id: int) -> Thread | None: ...

    async def list_threads(self, channel_id: int) -> list[Thread]: ...

    async def get_thread_meta(self, thread_id: int) -> ThreadMeta | None: ...


class MessageStore(Protocol):
    """Message / Reply / ThreadRead 存储接口"""

    async def create_message(
        self,
        thread_id: int,
        user_id: int,
        content: str,
        created_at: datetime,
        idempotency_key: str | None = None,
    ) -> int: ...

    async def get_message(self, message_id: int) -> Message | None: ...

    async def get_message_by_idempotency_key(
        self, user_id: int, thread_id: int, key: str
    ) -> Message | None: ...

    async def list_messages(self, thread_id: int) -> list[Message]: ...

    async def update_message_content(self, message_id: int, content: str) -> None: ...

    async def delete_message(self, message_id: int) -> None: ...

    async def create_reply(
        self,
        message_id: int,
        user_id: int,
        content: str,
        created_at: datetime,
    ) -> int: ...

    async def get_reply(self, reply_id: int) -> Reply | None: ...

    async def list_replies(self, message_id: int) -> list[Reply]: ...

    async def update_reply_content(self, reply_id: int, content: str) -> None: ...

    async def delete_reply(self, reply_id: int) -> None: ...

    async def delete_replies_for_message(self, message_id: int) -> int: ...

    async def upsert_thread_read(
        self,
        user_id: int,
        thread_id: int,
        last_read_message_id: int,
        updated_at: datetime,
    ) -> None: ...

    async def get_thread_read(self, user_id: int, thread_id: int) -> ThreadRead | None: ...


class TaskStore(Protocol):
    """Task 存储接口 -- message_id 唯一"""

    async def insert_task(
        self,
        message_id: int,
        channel_id: int,
        thread_id: int,
        created_by: int,
        title: str,
        note: str,
        now: datetime,
        *,
        ignore_duplicate: bool = False,
    ) -> bool:
        """插入任务，返回是否真正插入"""
        ...

    async def get_task(self, task_id: int) -> Task | None: ...

    async def get_task_by_message(self, message_id: int) -> Task | None: ...

    async def list_tasks(
        self,
        done_cutoff: datetime,
        status: TaskStatus | None = None,
        channel_id: int | None = None,
        thread_id: int | None = None,
        limit: int = ...,
    ) -> list[Task]: ...

    async def update_task(
        self,
        task_id: int,
        updated_at: datetime,
        *,
        title: str | None = None,
        note: str | None = None,
        status: TaskStatus | None = None,
    ) -> int: ...

    async def delete_task(self, task_id: int) -> None: ...

    async def delete_task_for_message(self, message_id: int) -> int: ...
