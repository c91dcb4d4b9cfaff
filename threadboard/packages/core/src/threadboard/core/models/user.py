"""User / Session Domain Model

Session 可用当且仅当 revoked_at 为空且 now < expires_at。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    """用户身份（不含凭证哈希）"""

    id: int = Field(description="用户 ID")
    name: str = Field(description="显示名称")
    email: str = Field(description="登录邮箱，唯一")
    created_at: datetime = Field(description="注册时间")


class Session(BaseModel):
    """会话 -- 不可猜测的随机 token 映射到用户"""

    session_id: str = Field(description="会话 token")
    user_id: int
    created_at: datetime
    expires_at: datetime = Field(description="绝对过期时间，每次鉴权成功后滑动")
    revoked_at: datetime | None = Field(default=None, description="注销时间")

    def is_active(self, now: datetime) -> bool:
        """会话是否可用"""
        return self.revoked_at is None and now < self.expires_at


class AuthenticatedUser(BaseModel):
    """已鉴权的调用者身份 -- 显式传入每个命令"""

    id: int
    name: str
    email: str
    session_id: str
