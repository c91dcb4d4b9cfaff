"""Threadboard 异常体系

每个命令失败都以同步错误返回调用方，不做自动重试。
status_code/code 由 gateway 的统一异常处理器渲染为
{"error": {"code": ..., "message": ...}}。
"""


class ThreadboardError(Exception):
    """领域异常基类"""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class UnauthorizedError(ThreadboardError):
    """会话缺失、无效、过期或已撤销；登录凭证不匹配"""

    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class InvalidRequestError(ThreadboardError):
    """字段缺失、trim 后为空、非法枚举值等

    fields 提供字段级错误详情（可选）。
    """

    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or {}


class ConflictError(ThreadboardError):
    """唯一约束冲突（重复邮箱、重复频道名）"""

    status_code = 409
    code = "CONFLICT"


class ForbiddenError(ThreadboardError):
    """编辑或删除他人内容"""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ThreadboardError):
    """目标实体不存在

    Args:
        entity: 实体名（message/reply/task/thread/channel/checklist_item）
        entity_id: 实体 ID，可选
    """

    status_code = 404

    def __init__(self, entity: str, entity_id: int | None = None) -> None:
        label = entity.replace("_", " ").capitalize()
        message = f"{label} not found."
        if entity_id is not None:
            message = f"{label} with id {entity_id} does not exist"
        super().__init__(message, code=f"{entity.upper()}_NOT_FOUND")
        self.entity = entity
        self.entity_id = entity_id


class InternalError(ThreadboardError):
    """写入后回查为空 -- 数据完整性问题，而非用户错误"""

    status_code = 500
    code = "INTERNAL_ERROR"
