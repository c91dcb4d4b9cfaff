"""TaskStore SQLite 实现

tasks.message_id 唯一，保证一条消息最多派生一个任务；
自动创建走 INSERT OR IGNORE，由影响行数判断是否真正插入。
读取时反规范化 created_by_name / channel_name / thread_title。
"""

from datetime import datetime
from typing import Any

import aiosqlite

from ..config import TASK_LIST_LIMIT
from ..models.enums import TaskStatus
from ..models.task import Task
from .base import SqliteStoreBase, from_db_ts, to_db_ts

_TASK_SELECT = """
SELECT tasks.*,
       users.name AS created_by_name,
       channels.name AS channel_name,
       threads.title AS thread_title
FROM tasks
JOIN users ON users.id = tasks.created_by
JOIN channels ON channels.id = tasks.channel_id
JOIN threads ON threads.id = tasks.thread_id
"""


class SqliteTaskStore(SqliteStoreBase):
    """TaskStore 的 SQLite 实现"""

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
        """插入任务记录

        Args:
            ignore_duplicate: True 时使用 INSERT OR IGNORE，message_id 已有任务则跳过

        Returns:
            是否真正插入了新行
        """
        verb = "INSERT OR IGNORE" if ignore_duplicate else "INSERT"
        ts = to_db_ts(now)
        result = await self._execute_write(
            f"""
            {verb} INTO tasks (message_id, channel_id, thread_id, created_by,
                               title, note, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message_id,
                channel_id,
                thread_id,
                created_by,
                title,
                note,
                TaskStatus.OPEN.value,
                ts,
                ts,
            ),
        )
        return result.rowcount > 0

    async def get_task(self, task_id: int) -> Task | None:
        row = await self._fetch_one(f"{_TASK_SELECT} WHERE tasks.id = ?", (task_id,))
        return self._row_to_task(row) if row is not None else None

    async def get_task_by_message(self, message_id: int) -> Task | None:
        row = await self._fetch_one(
            f"{_TASK_SELECT} WHERE tasks.message_id = ?",
            (message_id,),
        )
        return self._row_to_task(row) if row is not None else None

    async def list_tasks(
        self,
        done_cutoff: datetime,
        status: TaskStatus | None = None,
        channel_id: int | None = None,
        thread_id: int | None = None,
        limit: int = TASK_LIST_LIMIT,
    ) -> list[Task]:
        """查询任务列表，按 id 倒序

        done 任务仅在 updated_at >= done_cutoff 时可见；
        open/doing 不受保留窗口影响。
        """
        clauses: list[str] = []
        params: list[Any] = []
        cutoff = to_db_ts(done_cutoff)

        if status is None:
            clauses.append("(tasks.status != ? OR tasks.updated_at >= ?)")
            params.extend([TaskStatus.DONE.value, cutoff])
        else:
            clauses.append("tasks.status = ?")
            params.append(status.value)
            if status == TaskStatus.DONE:
                clauses.append("tasks.updated_at >= ?")
                params.append(cutoff)

        if channel_id is not None:
            clauses.append("tasks.channel_id = ?")
            params.append(channel_id)
        if thread_id is not None:
            clauses.append("tasks.thread_id = ?")
            params.append(thread_id)

        params.append(limit)
        rows = await self._fetch_all(
            f"{_TASK_SELECT} WHERE {' AND '.join(clauses)} ORDER BY tasks.id DESC LIMIT ?",
            params,
        )
        return [self._row_to_task(row) for row in rows]

    async def update_task(
        self,
        task_id: int,
        updated_at: datetime,
        *,
        title: str | None = None,
        note: str | None = None,
        status: TaskStatus | None = None,
    ) -> int:
        """更新给定字段并刷新 updated_at，返回影响行数"""
        assignments: list[str] = []
        params: list[Any] = []
        if status is not None:
            assignments.append("status = ?")
            params.append(status.value)
        if title is not None:
            assignments.append("title = ?")
            params.append(title)
        if note is not None:
            assignments.append("note = ?")
            params.append(note)
        assignments.append("updated_at = ?")
        params.extend([to_db_ts(updated_at), task_id])

        result = await self._execute_write(
            f"UPDATE tasks SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        return result.rowcount

    async def delete_task(self, task_id: int) -> None:
        await self._execute_write("DELETE FROM tasks WHERE id = ?", (task_id,))

    async def delete_task_for_message(self, message_id: int) -> int:
        result = await self._execute_write(
            "DELETE FROM tasks WHERE message_id = ?",
            (message_id,),
        )
        return result.rowcount

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            id=row["id"],
            message_id=row["message_id"],
            channel_id=row["channel_id"],
            thread_id=row["thread_id"],
            created_by=row["created_by"],
            title=row["title"],
            note=row["note"],
            status=TaskStatus(row["status"]),
            created_at=from_db_ts(row["created_at"]),
            updated_at=from_db_ts(row["updated_at"]),
            created_by_name=row["created_by_name"],
            channel_name=row["channel_name"],
            thread_title=row["thread_title"],
        )
