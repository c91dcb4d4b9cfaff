"""任务看板路由

GET|POST         /api/tasks
GET|PATCH|DELETE /api/tasks/{task_id}
POST             /api/tasks/{task_id}/checklist
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from threadboard.core.config import BOT_MESSAGE_MAX_LENGTH
from threadboard.core.models import AuthenticatedUser, Task

from ..deps import get_current_user, get_task_service
from ..services.task_service import TaskService, parse_task_status
from .messages import ChecklistToggleRequest

router = APIRouter()


class CreateTaskRequest(BaseModel):
    """看板创建任务请求体"""

    thread_id: int = Field(gt=0, description="来源消息所在线程")
    title: str = Field(min_length=1)
    note: str | None = None
    bot_message: str | None = Field(
        default=None,
        max_length=BOT_MESSAGE_MAX_LENGTH,
        description="TaskBot 通知模板，支持 {title} / {creator} 占位符",
    )


class UpdateTaskRequest(BaseModel):
    """任务更新请求体 -- 至少提供一个字段"""

    status: str | None = Field(default=None, description="open / doing / done")
    title: str | None = None
    note: str | None = None


@router.get("/api/tasks", response_model=list[Task])
async def list_tasks(
    status: str | None = Query(default=None, description="按状态筛选"),
    channel_id: int | None = Query(default=None),
    thread_id: int | None = Query(default=None),
    user: AuthenticatedUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """查询任务列表，按 id 倒序，最多 200 条"""
    return await service.list_tasks(
        status=parse_task_status(status),
        channel_id=channel_id,
        thread_id=thread_id,
    )


@router.post("/api/tasks", response_model=Task, status_code=201)
async def create_task(
    body: CreateTaskRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return await service.create_task(
        user,
        thread_id=body.thread_id,
        title=body.title,
        note=body.note,
        bot_message=body.bot_message,
    )


@router.get("/api/tasks/{task_id}", response_model=Task)
async def get_task(
    task_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return await service.get_task(task_id)


@router.patch("/api/tasks/{task_id}", response_model=Task)
async def update_task(
    task_id: int,
    body: UpdateTaskRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return await service.update_task(
        task_id,
        status=body.status,
        title=body.title,
        note=body.note,
    )


@router.delete("/api/tasks/{task_id}")
async def delete_task(
    task_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(task_id)
    return {"ok": True}


@router.post("/api/tasks/{task_id}/checklist", response_model=Task)
async def toggle_task_checklist(
    task_id: int,
    body: ChecklistToggleRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    return await service.toggle_task_checklist(task_id, body.ordinal, body.checked)
