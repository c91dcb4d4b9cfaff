"""AuthService -- 注册/登录/会话校验

会话为滑动过期：每次鉴权成功都在同一事务内把 expires_at 推到 now + TTL。
"""

import hashlib
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

import aiosqlite
import structlog
from threadboard.core.config import ChatConfig
from threadboard.core.exceptions import (
    ConflictError,
    InvalidRequestError,
    UnauthorizedError,
)
from threadboard.core.models import AuthenticatedUser, Session, User
from threadboard.core.store import StoreGroup

from .base import Clock, ServiceBase, utc_now

log = structlog.get_logger()

PasswordHasher = Callable[[str], str]


def hash_password(password: str) -> str:
    """默认凭证哈希：SHA-256 十六进制摘要"""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class AuthService(ServiceBase):
    """鉴权业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        config: ChatConfig | None = None,
        clock: Clock = utc_now,
        password_hasher: PasswordHasher = hash_password,
    ) -> None:
        super().__init__(store_group, config=config, clock=clock)
        self._hash = password_hasher

    @property
    def _ttl(self) -> timedelta:
        return timedelta(days=self._config.session_ttl_days)

    async def signup(self, name: str, email: str, password: str) -> tuple[User, Session]:
        """注册新用户并签发会话

        Raises:
            InvalidRequestError: 名称 trim 后为空
            ConflictError: 邮箱已注册
        """
        name = name.strip()
        if not name:
            raise InvalidRequestError("Name cannot be empty.", fields={"name": "required"})

        now = self._clock()
        try:
            async with self._stores.transaction():
                user_id = await self._stores.user_store.create_user(
                    name=name,
                    email=email,
                    password_hash=self._hash(password),
                    created_at=now,
                )
                session = await self._issue_session(user_id, now)
        except aiosqlite.IntegrityError as e:
            raise ConflictError("Email already exists.") from e

        user = User(id=user_id, name=name, email=email, created_at=now)
        log.info("user_signed_up", user_id=user_id)
        return user, session

    async def login(self, email: str, password: str) -> tuple[User, Session]:
        """校验凭证并签发新会话

        Raises:
            UnauthorizedError: 邮箱不存在或密码不匹配（统一错误信息）
        """
        credentials = await self._stores.user_store.get_credentials(email)
        if credentials is None or credentials[1] != self._hash(password):
            raise UnauthorizedError("Invalid credentials.")

        user = credentials[0]
        async with self._stores.transaction():
            session = await self._issue_session(user.id, self._clock())
        log.info("user_logged_in", user_id=user.id)
        return user, session

    async def authenticate(self, session_id: str | None) -> AuthenticatedUser:
        """校验会话并滑动过期时间

        Raises:
            UnauthorizedError: token 缺失、未知、已撤销或已过期
        """
        if not session_id:
            raise UnauthorizedError()

        now = self._clock()
        async with self._stores.transaction():
            session = await self._stores.user_store.get_session(session_id)
            if session is None or not session.is_active(now):
                raise UnauthorizedError()
            user = await self._stores.user_store.get_user(session.user_id)
            if user is None:
                raise UnauthorizedError()
            await self._stores.user_store.extend_session(session_id, now + self._ttl)

        return AuthenticatedUser(
            id=user.id,
            name=user.name,
            email=user.email,
            session_id=session_id,
        )

    async def logout(self, user: AuthenticatedUser) -> None:
        """撤销当前会话"""
        async with self._stores.transaction():
            await self._stores.user_store.revoke_session(user.session_id, self._clock())
        log.info("user_logged_out", user_id=user.id)

    async def _issue_session(self, user_id: int, now: datetime) -> Session:
        session = Session(
            session_id=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + self._ttl,
        )
        await self._stores.user_store.create_session(session)
        return session
