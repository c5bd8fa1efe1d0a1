"""聊天核心的业务异常。

backend 适配器、快照存储与配置校验抛出的错误都继承自 BusinessError，
会话控制器（ChatSession）只捕获这一类，把 message 作为错误提示展示给用户。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码，如 "API_ERROR"、"STORE_WRITE_ERROR"。
        message: 直接展示给用户的错误文本。
        http_status: 上游返回的状态码；本地错误默认 400。
        extra: 附加上下文，如 provider、body、partial。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """连接失败或超时，请求没有拿到任何响应。"""


class ApiError(BusinessError):
    """backend 返回 >=400（429 除外）；message 形如 "<label> error <status>: <body>"。"""


class RateLimitError(BusinessError):
    """backend 返回 429。"""


class ValidationError(BusinessError):
    """输入或配置不合法，例如缺少 API key、未知 backend、会话不存在。"""


class StoreError(BusinessError):
    """会话快照读写失败。"""


class StreamCancelled(BusinessError):
    """发送被用户取消。

    不作为错误展示：控制器静默转为 aborted，已收到的增量保留在 extra["partial"]。
    """

    def __init__(self, message: str = "send cancelled", **extra):
        super().__init__(code="CANCELLED", message=message, http_status=499, **extra)
