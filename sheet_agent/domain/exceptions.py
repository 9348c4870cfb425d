"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层或宿主 UI 做统一捕获与用户提示。

错误分类：
- TransportError 及其子类：请求失败、非 2xx、SSE 帧格式错误；只终止当前轮。
- ActionParamError：单个动作参数缺失或非法；只影响该动作。
- DocumentTransactionError：文档连接在批量执行中失败；中止当前计划剩余动作。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、action_type 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class TransportError(BusinessError):
    """与模型服务通信失败的基类。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(TransportError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(TransportError):
    """Provider 限流错误，由上层负责重试/退避策略。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class ActionParamError(BusinessError):
    """动作缺少必填参数或参数非法。"""

    def __init__(self, action_type: str, key: str, message: str = ""):
        text = message or f"Action '{action_type}' missing required param: '{key}'"
        super().__init__(code="ACTION_PARAM_ERROR", message=text, action_type=action_type, key=key)
        self.action_type = action_type
        self.key = key


class DocumentTransactionError(BusinessError):
    """底层文档连接失败，整批动作无法继续。"""
