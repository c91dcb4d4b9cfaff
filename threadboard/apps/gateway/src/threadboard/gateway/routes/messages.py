"""消息/回复路由

GET|POST     /api/threads/{thread_id}/messages
POST         /api/threads/{thread_id}/read
PATCH|DELETE /api/messages/{message_id}
POST         /api/messages/{message_id}/checklist
GET|POST     /api/messages/{message_id}/replies
PATCH|DELETE /api/replies/{reply_id}
POST         /api/replies/{reply_id}/checklist
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse
from threadboard.core.models import AuthenticatedUser, Message, Reply, ThreadRead

from ..deps import get_chat_service, get_current_user
from ..services.chat_service import ChatService

router = APIRouter()


class PostMessageRequest(BaseModel):
    """发送消息请求体"""

    content: str = Field(min_length=1, description="消息内容，可包含 :task 标记")
    create_task: bool = Field(default=False, description="显式请求派生任务")
    idempotency_key: str | None = Field(default=None, description="幂等键，用于去重")


class PostReplyRequest(BaseModel):
    """回复请求体"""

    content: str = Field(min_length=1)
    create_task: bool = False


class EditContentRequest(BaseModel):
    content: str = Field(min_length=1)


class ChecklistToggleRequest(BaseModel):
    """checklist 勾选请求体"""

    ordinal: int = Field(ge=0, description="fenced 代码块之外的 checklist 序号，从 0 开始")
    checked: bool


class MarkReadRequest(BaseModel):
    last_read_message_id: int = Field(ge=0)


# ---- threads ----


@router.get("/api/threads/{thread_id}/messages", response_model=list[Message])
async def list_messages(
    thread_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.list_messages(thread_id)


@router.post("/api/threads/{thread_id}/messages", response_model=Message, status_code=201)
async def post_message(
    thread_id: int,
    body: PostMessageRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """发送消息

    - 新消息返回 201 Created
    - idempotency_key 已存在返回 200 OK 与已存储的消息
    """
    message, created = await service.post_message(
        user,
        thread_id,
        body.content,
        create_task=body.create_task,
        idempotency_key=body.idempotency_key,
    )
    if not created:
        return JSONResponse(status_code=200, content=message.model_dump(mode="json"))
    return message


@router.post("/api/threads/{thread_id}/read", response_model=ThreadRead)
async def mark_thread_read(
    thread_id: int,
    body: MarkReadRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.mark_thread_read(user, thread_id, body.last_read_message_id)


# ---- messages ----


@router.patch("/api/messages/{message_id}", response_model=Message)
async def edit_message(
    message_id: int,
    body: EditContentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.edit_message(user, message_id, body.content)


@router.delete("/api/messages/{message_id}")
async def delete_message(
    message_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """删除消息（级联删除回复与关联任务）"""
    await service.delete_message(user, message_id)
    return {"ok": True}


@router.post("/api/messages/{message_id}/checklist", response_model=Message)
async def toggle_message_checklist(
    message_id: int,
    body: ChecklistToggleRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.toggle_message_checklist(message_id, body.ordinal, body.checked)


@router.get("/api/messages/{message_id}/replies", response_model=list[Reply])
async def list_replies(
    message_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.list_replies(message_id)


@router.post("/api/messages/{message_id}/replies", response_model=Reply, status_code=201)
async def post_reply(
    message_id: int,
    body: PostReplyRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.post_reply(user, message_id, body.content, create_task=body.create_task)


# ---- replies ----


@router.patch("/api/replies/{reply_id}", response_model=Reply)
async def edit_reply(
    reply_id: int,
    body: EditContentRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.edit_reply(user, reply_id, body.content)


@router.delete("/api/replies/{reply_id}")
async def delete_reply(
    reply_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    await service.delete_reply(user, reply_id)
    return {"ok": True}


@router.post("/api/replies/{reply_id}/checklist", response_model=Reply)
async def toggle_reply_checklist(
    reply_id: int,
    body: ChecklistToggleRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.toggle_reply_checklist(reply_id, body.ordinal, body.checked)
