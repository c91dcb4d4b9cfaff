"""UserStore SQLite 实现 -- users + sessions 两张表

凭证哈希只在本模块内可见，对外返回的 User 不含 password 列。
"""

from datetime import datetime

import aiosqlite

from ..config import TASK_BOT_EMAIL, TASK_BOT_NAME, TASK_BOT_PASSWORD_HASH
from ..exceptions import InternalError
from ..models.user import Session, User
from .base import SqliteStoreBase, from_db_ts, to_db_ts


class SqliteUserStore(SqliteStoreBase):
    """UserStore 的 SQLite 实现"""

    async def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        created_at: datetime,
    ) -> int:
        """创建用户，邮箱重复时抛出 sqlite3.IntegrityError"""
        result = await self._execute_write(
            "INSERT INTO users (name, email, password, created_at) VALUES (?, ?, ?, ?)",
            (name, email, password_hash, to_db_ts(created_at)),
        )
        return result.lastrowid

    async def get_user(self, user_id: int) -> User | None:
        row = await self._fetch_one("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row) if row is not None else None

    async def get_credentials(self, email: str) -> tuple[User, str] | None:
        """按邮箱查询用户及其凭证哈希（登录校验用）"""
        row = await self._fetch_one("SELECT * FROM users WHERE email = ?", (email,))
        if row is None:
            return None
        return self._row_to_user(row), row["password"]

    async def get_or_create_task_bot(self, now: datetime) -> User:
        """获取 TaskBot 系统用户，不存在时懒创建"""
        await self._execute_write(
            """
            INSERT OR IGNORE INTO users (name, email, password, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (TASK_BOT_NAME, TASK_BOT_EMAIL, TASK_BOT_PASSWORD_HASH, to_db_ts(now)),
        )
        credentials = await self.get_credentials(TASK_BOT_EMAIL)
        if credentials is None:
            raise InternalError("TaskBot user could not be created")
        return credentials[0]

    async def create_session(self, session: Session) -> None:
        await self._execute_write(
            """
            INSERT INTO sessions (id, user_id, created_at, expires_at, revoked_at)
            VALUES (?, ?, ?, ?, NULL)
            """,
            (
                session.session_id,
                session.user_id,
                to_db_ts(session.created_at),
                to_db_ts(session.expires_at),
            ),
        )

    async def get_session(self, session_id: str) -> Session | None:
        row = await self._fetch_one("SELECT * FROM sessions WHERE id = ?", (session_id,))
        if row is None:
            return None
        return Session(
            session_id=row["id"],
            user_id=row["user_id"],
            created_at=from_db_ts(row["created_at"]),
            expires_at=from_db_ts(row["expires_at"]),
            revoked_at=from_db_ts(row["revoked_at"]),
        )

    async def extend_session(self, session_id: str, expires_at: datetime) -> None:
        """滑动过期时间"""
        await self._execute_write(
            "UPDATE sessions SET expires_at = ? WHERE id = ?",
            (to_db_ts(expires_at), session_id),
        )

    async def revoke_session(self, session_id: str, revoked_at: datetime) -> None:
        await self._execute_write(
            "UPDATE sessions SET revoked_at = ? WHERE id = ? AND revoked_at IS NULL",
            (to_db_ts(revoked_at), session_id),
        )

    async def purge_sessions(self, now: datetime) -> int:
        """删除已过期或已撤销的会话，返回删除行数"""
        result = await self._execute_write(
            "DELETE FROM sessions WHERE expires_at <= ? OR revoked_at IS NOT NULL",
            (to_db_ts(now),),
        )
        return result.rowcount

    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            created_at=from_db_ts(row["created_at"]),
        )
