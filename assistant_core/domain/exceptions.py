"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在调用方（UI / 脚本）做统一捕获与用户提示。

ProviderError 及其子类构成两个客户端共享的错误分类：
network / invalidResponse / noData / decoding / apiMessage / threadError / runError。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、endpoint 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ProviderError(BusinessError):
    """Provider 调用失败的基类，两个客户端共用。"""

    default_code = "PROVIDER_ERROR"

    def __init__(self, message: str = "", code: Optional[str] = None, **extra):
        super().__init__(code=code or self.default_code, message=message, **extra)

    def describe(self) -> str:
        """返回面向用户的错误描述。"""

        return self.message


class NetworkError(ProviderError):
    """网络层错误，例如连接失败、超时等。"""

    default_code = "NETWORK_ERROR"

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, **extra):
        self.cause = cause
        super().__init__(message or str(cause or ""), **extra)

    def describe(self) -> str:
        return f"Network Error: {self.message}"


class InvalidResponseError(ProviderError):
    """响应结构不符合预期（包括无法解析错误体的非 2xx 响应）。"""

    default_code = "INVALID_RESPONSE"

    def __init__(self, message: str = "Server returned invalid response", **extra):
        super().__init__(message, **extra)

    def describe(self) -> str:
        return "Server returned invalid response"


class NoDataError(ProviderError):
    """响应体为空，或流式响应没有产生任何片段。"""

    default_code = "NO_DATA"

    def __init__(self, message: str = "No data received", **extra):
        super().__init__(message, **extra)

    def describe(self) -> str:
        return "No data received"


class DecodingError(ProviderError):
    """2xx 响应体不是合法 JSON。"""

    default_code = "DECODING_ERROR"

    def __init__(self, message: str = "", cause: Optional[BaseException] = None, **extra):
        self.cause = cause
        super().__init__(message or str(cause or "invalid JSON"), **extra)

    def describe(self) -> str:
        return f"Data parsing error: {self.message}"


class ApiError(ProviderError):
    """Provider 返回了结构化错误信息（error.message）。"""

    default_code = "API_ERROR"

    def describe(self) -> str:
        return f"API Error: {self.message}"


class ThreadError(ProviderError):
    """Assistant 线程创建失败。"""

    default_code = "THREAD_ERROR"

    def describe(self) -> str:
        return f"Thread Error: {self.message}"


class RunError(ProviderError):
    """Assistant run 生命周期失败（失败、取消、无回复）。"""

    default_code = "RUN_ERROR"

    def describe(self) -> str:
        return f"Run Error: {self.message}"


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ClientClosedError(BusinessError):
    """客户端已关闭后仍被调用。"""

    def __init__(self, message: str = "client is closed"):
        super().__init__(code="CLIENT_CLOSED", message=message)


class StoreError(BusinessError):
    """本地存储读写失败。"""
