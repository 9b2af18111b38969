"""
业务异常：服务层抛出，由全局异常处理器转换为 HTTP 响应
"""


class ServiceError(ValueError):
    """业务异常基类"""
    status_code = 400

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class AuthenticationError(ServiceError):
    """认证失败（令牌无效、过期、账号或密码错误）"""
    status_code = 401


class PermissionDeniedError(ServiceError):
    """权限不足"""
    status_code = 403


class DownloadDeniedError(PermissionDeniedError):
    """无下载权限或下载次数已用尽"""


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """资源冲突（重复邮箱、已拥有的授权等）"""
    status_code = 409


class InvalidTransitionError(ConflictError):
    """订单状态不允许的流转"""


class ExternalServiceError(ServiceError):
    """外部服务（支付、对象存储）调用失败，用户可重试"""
    status_code = 502


class PaymentProviderError(ExternalServiceError):
    """支付会话创建或查询失败"""
