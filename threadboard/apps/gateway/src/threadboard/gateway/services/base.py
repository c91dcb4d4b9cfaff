"""服务层公共基类 -- Store、广播器、配置与时钟注入"""

from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel
from threadboard.core.config import ChatConfig
from threadboard.core.exceptions import NotFoundError
from threadboard.core.models import EventType
from threadboard.core.parser import find_checklist_items, toggle_checklist_item
from threadboard.core.store import StoreGroup

from .sse_hub import SSEHub

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class ServiceBase:
    """服务基类

    每个命令显式接收调用者身份；服务实例不跨请求缓存实体状态。
    """

    def __init__(
        self,
        store_group: StoreGroup,
        sse_hub: SSEHub | None = None,
        config: ChatConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._stores = store_group
        self._sse_hub = sse_hub
        self._config = config or ChatConfig()
        self._clock = clock

    async def _emit(self, event_type: EventType, payload: BaseModel) -> None:
        """提交之后广播事件；未配置广播器时静默跳过"""
        if self._sse_hub is None:
            return
        await self._sse_hub.publish(event_type, payload, self._clock())


def toggle_checklist_or_raise(content: str, ordinal: int, checked: bool) -> str:
    """对内容应用 checklist 勾选

    Returns:
        勾选后的新内容

    Raises:
        NotFoundError: ordinal 不对应任何 checklist 项，或目标项已处于期望状态（内容无变化）
    """
    items = find_checklist_items(content)
    if ordinal < 0 or ordinal >= len(items):
        raise NotFoundError("checklist_item")
    updated = toggle_checklist_item(content, ordinal, checked)
    if updated == content:
        raise NotFoundError("checklist_item")
    return updated
