"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在服务层或上层应用做统一捕获与用户提示。

错误分层：
- InvalidInputError: 入参不合法（空消息、空响应），在修改历史之前同步抛出。
- HistoryInvariantError: 违反对话历史的追加规则，属于调用方的编程错误。
- ToolCatalogError / ToolExecutionError: 工具目录与单次工具调用失败，由 Agent 循环在工具粒度内吸收。
- BackendError 及其子类: 对话后端的传输/拒绝/配置错误，会中止当前一轮对话。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "EMPTY_MESSAGE"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 trace_id、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class InvalidInputError(BusinessError):
    """参数校验失败，例如空的用户消息。"""


class HistoryInvariantError(BusinessError):
    """追加的消息违反了对话历史的顺序约束。"""


class ToolCatalogError(BusinessError):
    """工具目录不可用（连接失败、列举工具失败等）。"""


class ToolExecutionError(BusinessError):
    """单次工具调用失败，cause 保存底层异常。"""

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 502,
        cause: Optional[BaseException] = None,
        **extra,
    ):
        super().__init__(code=code, message=message, http_status=http_status, **extra)
        self.cause = cause


class BackendError(BusinessError):
    """对话后端错误基类，会中止整轮对话。"""


class NetworkError(BackendError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BackendError):
    """后端 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BackendError):
    """后端限流错误，本模块不做重试。"""


class ConfigurationError(BackendError):
    """后端配置缺失或无效（API Key、Endpoint 等）。"""
