"""SQLite 数据库初始化

PRAGMA 配置 + 八张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# users 表 DDL
_USERS_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    email       TEXT NOT NULL UNIQUE,
    password    TEXT NOT NULL,
    created_at  TEXT NOT NULL
);
"""

# sessions 表 DDL
_SESSIONS_DDL = """
CREATE TABLE IF NOT EXISTS sessions (
    id          TEXT PRIMARY KEY,
    user_id     INTEGER NOT NULL,
    created_at  TEXT NOT NULL,
    expires_at  TEXT NOT NULL,
    revoked_at  TEXT,

    FOREIGN KEY (user_id) REFERENCES users(id)
);
"""

# channels 表 DDL
_CHANNELS_DDL = """
CREATE TABLE IF NOT EXISTS channels (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL UNIQUE,
    created_at  TEXT NOT NULL
);
"""

# threads 表 DDL
_THREADS_DDL = """
CREATE TABLE IF NOT EXISTS threads (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    channel_id  INTEGER NOT NULL,
    title       TEXT NOT NULL,
    created_by  INTEGER NOT NULL,
    created_at  TEXT NOT NULL,

    FOREIGN KEY (channel_id) REFERENCES channels(id),
    FOREIGN KEY (created_by) REFERENCES users(id)
);
"""

# messages 表 DDL
_MESSAGES_DDL = """
CREATE TABLE IF NOT EXISTS messages (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id       INTEGER NOT NULL,
    user_id         INTEGER NOT NULL,
    content         TEXT NOT NULL,
    created_at      TEXT NOT NULL,
    idempotency_key TEXT,

    FOREIGN KEY (thread_id) REFERENCES threads(id),
    FOREIGN KEY (user_id) REFERENCES users(id)
);
"""

# replies 表 DDL
_REPLIES_DDL = """
CREATE TABLE IF NOT EXISTS replies (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id  INTEGER NOT NULL,
    user_id     INTEGER NOT NULL,
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL,

    FOREIGN KEY (message_id) REFERENCES messages(id),
    FOREIGN KEY (user_id) REFERENCES users(id)
);
"""

# thread_reads 表 DDL
_THREAD_READS_DDL = """
CREATE TABLE IF NOT EXISTS thread_reads (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id               INTEGER NOT NULL,
    thread_id             INTEGER NOT NULL,
    last_read_message_id  INTEGER NOT NULL DEFAULT 0,
    updated_at            TEXT NOT NULL,

    UNIQUE (user_id, thread_id),
    FOREIGN KEY (user_id) REFERENCES users(id),
    FOREIGN KEY (thread_id) REFERENCES threads(id)
);
"""

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id  INTEGER NOT NULL UNIQUE,
    channel_id  INTEGER NOT NULL,
    thread_id   INTEGER NOT NULL,
    created_by  INTEGER NOT NULL,
    title       TEXT NOT NULL,
    note        TEXT NOT NULL DEFAULT '',
    status      TEXT NOT NULL DEFAULT 'open'
                CHECK (status IN ('open', 'doing', 'done')),
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL,

    FOREIGN KEY (message_id) REFERENCES messages(id),
    FOREIGN KEY (channel_id) REFERENCES channels(id),
    FOREIGN KEY (thread_id) REFERENCES threads(id),
    FOREIGN KEY (created_by) REFERENCES users(id)
);
"""

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_id ON sessions(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_threads_channel_id ON threads(channel_id);",
    "CREATE INDEX IF NOT EXISTS idx_messages_thread_id ON messages(thread_id);",
    # 幂等键按 (发送者, 线程) 隔离，仅对非 NULL 值生效
    "DROP INDEX IF EXISTS idx_messages_idempotency_key;",
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_idempotency_scope "
        "ON messages(user_id, thread_id, idempotency_key) "
        "WHERE idempotency_key IS NOT NULL;"
    ),
    "CREATE INDEX IF NOT EXISTS idx_replies_message_id ON replies(message_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_thread_id ON tasks(thread_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_channel_id ON tasks(channel_id);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表（按外键依赖顺序）
    for ddl in (
        _USERS_DDL,
        _SESSIONS_DDL,
        _CHANNELS_DDL,
        _THREADS_DDL,
        _MESSAGES_DDL,
        _REPLIES_DDL,
        _THREAD_READS_DDL,
        _TASKS_DDL,
    ):
        await conn.execute(ddl)

    for idx_sql in _INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
