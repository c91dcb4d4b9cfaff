"""频道/线程路由

GET|POST /api/channels
GET|POST /api/channels/{channel_id}/threads
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from threadboard.core.models import AuthenticatedUser, Channel, Thread

from ..deps import get_chat_service, get_current_user
from ..services.chat_service import ChatService

router = APIRouter()


class CreateChannelRequest(BaseModel):
    name: str = Field(min_length=1, description="频道名，唯一")


class CreateThreadRequest(BaseModel):
    title: str = Field(min_length=1)


@router.get("/api/channels", response_model=list[Channel])
async def list_channels(
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """按 id 升序返回全部频道"""
    return await service.list_channels()


@router.post("/api/channels", response_model=Channel, status_code=201)
async def create_channel(
    body: CreateChannelRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """创建频道，同时创建 main 线程"""
    return await service.create_channel(user, body.name)


@router.get("/api/channels/{channel_id}/threads", response_model=list[Thread])
async def list_threads(
    channel_id: int,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    """频道内线程，最新在前"""
    return await service.list_threads(channel_id)


@router.post("/api/channels/{channel_id}/threads", response_model=Thread, status_code=201)
async def create_thread(
    channel_id: int,
    body: CreateThreadRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
):
    return await service.create_thread(user, channel_id, body.title)
