"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层做统一捕获与调用方提示。

注意：清洗/解析模型输出失败（SanitizationError / ParseFailure）
不是异常，而是 coach_core.parsing 中返回的结果值。
"""

from typing import Any, Dict


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 可读错误信息（仅用于日志，不直接返回给调用方）。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """模型服务返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，核心层不重试，由调用方决定退避策略。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ActionExecutionError(BusinessError):
    """工具动作执行失败（未知工具、参数不合法、持久化失败）。"""


class OrchestrationError(BusinessError):
    """工具调用编排失败，对外统一视为 internal。"""

    def __init__(self, message: str, **extra):
        super().__init__(code="ORCHESTRATION_FAILED", message=message, http_status=500, **extra)


class UnsupportedToolRecursion(OrchestrationError):
    """跟进轮次中模型再次请求工具调用；只支持一层工具调用。"""


# ---- 面向调用方的错误 ----


class OperationError(BusinessError):
    """调用方可见的错误，只有三类：unauthenticated / invalid-argument / internal。"""

    status = "INTERNAL"

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message}


class Unauthenticated(OperationError):
    status = "UNAUTHENTICATED"

    def __init__(self, message: str = "You must be logged in."):
        super().__init__(code="unauthenticated", message=message, http_status=401)


class InvalidArgument(OperationError):
    status = "INVALID_ARGUMENT"

    def __init__(self, message: str):
        super().__init__(code="invalid-argument", message=message, http_status=400)


class Internal(OperationError):
    status = "INTERNAL"

    def __init__(self, message: str):
        super().__init__(code="internal", message=message, http_status=500)
