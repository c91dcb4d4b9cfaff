"""Client 异常体系"""


class ClientError(Exception):
    """Client 包基础异常"""


class ApiError(ClientError):
    """服务端返回非 2xx 响应

    code/message 取自响应体 {"error": {"code", "message"}}，无法解析时为空。
    """

    def __init__(self, status_code: int, code: str = "", message: str = "") -> None:
        super().__init__(f"HTTP {status_code} {code}: {message}".strip())
        self.status_code = status_code
        self.code = code
        self.message = message
