"""
JSON 响应信封：``{"code", "message", "data", "error"}``

webhook 被拒绝时返回此格式（code 为业务码，error.retryable 提示是否值得重投）；
webhook 成功确认不使用信封，而是纯文本 ``OK``。
"""
from datetime import datetime, timezone
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, Field, field_serializer

from shared.codes import BusinessCode


DataT = TypeVar("DataT")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ErrorDetail(BaseModel):
    type: str
    retryable: bool = False
    details: Optional[dict] = None
    field: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_serializer("timestamp")
    def _iso_utc(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class Response(BaseModel, Generic[DataT]):
    code: int
    message: str
    data: Optional[DataT] = None
    error: Optional[ErrorDetail] = None


def success_response(data: Any = None, message: str = "Success") -> Response:
    return Response(code=BusinessCode.SUCCESS, message=message, data=data)


def error_response(code: int, message: str, error_type: str = "BusinessError", **detail: Any) -> Response:
    """``detail`` 为 ErrorDetail 的其余字段：retryable / details / field / request_id"""
    return Response(code=code, message=message, error=ErrorDetail(type=error_type, **detail))
