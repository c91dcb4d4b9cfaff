"""鉴权路由

POST /api/auth/signup: 注册并签发会话
POST /api/auth/login: 登录并签发会话
POST /api/auth/logout: 撤销当前会话
GET  /api/auth/me: 当前身份
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field
from threadboard.core.models import AuthenticatedUser

from ..deps import get_auth_service, get_current_user
from ..services.auth_service import AuthService

router = APIRouter()


class SignupRequest(BaseModel):
    """注册请求体"""

    name: str = Field(min_length=1, description="显示名称")
    email: EmailStr
    password: str = Field(min_length=4)


class LoginRequest(BaseModel):
    """登录请求体"""

    email: EmailStr
    password: str = Field(min_length=1)


class AuthResponse(BaseModel):
    """身份 + 会话 token"""

    id: int
    name: str
    email: str
    session_id: str


@router.post("/api/auth/signup", response_model=AuthResponse, status_code=201)
async def signup(
    body: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    user, session = await auth_service.signup(body.name, body.email, body.password)
    return AuthResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        session_id=session.session_id,
    )


@router.post("/api/auth/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    user, session = await auth_service.login(body.email, body.password)
    return AuthResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        session_id=session.session_id,
    )


@router.post("/api/auth/logout")
async def logout(
    user: AuthenticatedUser = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
):
    await auth_service.logout(user)
    return {"ok": True}


@router.get("/api/auth/me", response_model=AuthResponse)
async def me(user: AuthenticatedUser = Depends(get_current_user)):
    return AuthResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        session_id=user.session_id,
    )
