"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，领域层不反向依赖核心层。
"""
from __future__ import annotations

from typing import Any, Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """
    业务异常基类

    ``retryable`` 表示调用方（例如重投 webhook 的支付渠道）原样重试是否可能成功。
    """

    retryable: bool = False

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)

    def log_context(self) -> dict[str, Any]:
        """结构化日志字段（不含 details，避免把载荷内容写进日志）"""
        return {
            "code": int(self.code),
            "error_type": self.error_type,
            "retryable": self.retryable,
        }


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )
