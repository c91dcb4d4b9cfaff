"""CLI 入口模块 -- python -m threadboard.core <command>

支持的命令：
  init-db         创建数据库表结构
  purge-sessions  删除已过期或已撤销的会话
"""

import asyncio
import sys
from datetime import UTC, datetime

from .config import get_db_path

_USAGE = """用法: python -m threadboard.core <command>
命令:
  init-db         创建数据库表结构
  purge-sessions  删除已过期或已撤销的会话"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(_USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "purge-sessions":
        asyncio.run(purge_sessions())
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, purge-sessions")
        sys.exit(1)


async def init_database() -> None:
    """创建 Store 实例组即完成建表"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    await store_group.conn.close()
    print("初始化完成")


async def purge_sessions() -> int:
    """执行会话清理，返回删除数量"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        async with store_group.transaction():
            purged = await store_group.user_store.purge_sessions(datetime.now(UTC))
        print(f"清理完成，删除 {purged} 个会话")
        return purged
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
