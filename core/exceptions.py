"""
全局异常处理：业务码到 HTTP 状态码的映射，以及统一 JSON 错误体

支付渠道只看 HTTP 状态码决定是否重投：4xx 表示永久性拒绝，5xx 表示稍后重试可能成功。
"""
import traceback
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status as http_status
from starlette.exceptions import HTTPException

from core.logging_config import get_logger
from core.response import Response, error_response
from domain.common.exceptions import BusinessException
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


_CODE_TO_HTTP_STATUS = {
    BusinessCode.PARAM_ERROR: http_status.HTTP_400_BAD_REQUEST,
    BusinessCode.PARAM_VALIDATION_ERROR: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
    BusinessCode.METHOD_NOT_ALLOWED: http_status.HTTP_405_METHOD_NOT_ALLOWED,
    BusinessCode.NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    BusinessCode.UNAUTHORIZED: http_status.HTTP_401_UNAUTHORIZED,
    BusinessCode.FORBIDDEN: http_status.HTTP_403_FORBIDDEN,
    BusinessCode.SYSTEM_ERROR: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    BusinessCode.SERVICE_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,

    PaymentCode.PROVIDER_ERROR: http_status.HTTP_502_BAD_GATEWAY,
    PaymentCode.PROVIDER_RECOVERABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,

    PaymentCode.WEBHOOK_MISSING_SIGNATURE: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.WEBHOOK_MALFORMED_BODY: http_status.HTTP_400_BAD_REQUEST,
    PaymentCode.WEBHOOK_KEY_UNAVAILABLE: http_status.HTTP_503_SERVICE_UNAVAILABLE,
    PaymentCode.WEBHOOK_AUTHENTICATION_FAILED: http_status.HTTP_401_UNAUTHORIZED,
    PaymentCode.WEBHOOK_MISSING_FIELDS: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
    PaymentCode.WEBHOOK_INVOICE_NOT_FOUND: http_status.HTTP_404_NOT_FOUND,
    PaymentCode.WEBHOOK_UNSUPPORTED_CURRENCY: http_status.HTTP_422_UNPROCESSABLE_ENTITY,
    PaymentCode.WEBHOOK_LEDGER_WRITE_FAILED: http_status.HTTP_500_INTERNAL_SERVER_ERROR,
    PaymentCode.WEBHOOK_SOURCE_NOT_ALLOWED: http_status.HTTP_403_FORBIDDEN,
}

_HTTP_STATUS_TO_CODE = {
    400: BusinessCode.PARAM_ERROR,
    401: BusinessCode.UNAUTHORIZED,
    403: BusinessCode.FORBIDDEN,
    404: BusinessCode.NOT_FOUND,
    405: BusinessCode.METHOD_NOT_ALLOWED,
    503: BusinessCode.SERVICE_UNAVAILABLE,
}


def business_code_to_http_status(code: int) -> int:
    """业务码 -> HTTP 状态码；未登记的业务码按 400 处理"""
    return _CODE_TO_HTTP_STATUS.get(code, http_status.HTTP_400_BAD_REQUEST)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex


def _json(status_code: int, body: Response, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def register_exception_handlers(app: FastAPI):
    logger = get_logger(__name__)

    @app.exception_handler(BusinessException)
    async def business_exception_handler(request: Request, exc: BusinessException):
        body = error_response(
            code=exc.code,
            message=exc.message,
            error_type=exc.error_type,
            retryable=exc.retryable,
            details=exc.details,
            field=exc.field,
            request_id=_request_id(request),
        )
        return _json(business_code_to_http_status(exc.code), body)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """路径参数等校验失败（例如 transaction_id 非正整数）"""
        errors = exc.errors()
        first = errors[0] if errors else {}
        body = error_response(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=f"Validation failed: {first.get('msg', 'unknown')}",
            error_type="ValidationError",
            details={"errors": [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in errors]},
            field=".".join(str(part) for part in first.get("loc", [])[1:]) or None,
            request_id=_request_id(request),
        )
        return _json(http_status.HTTP_422_UNPROCESSABLE_ENTITY, body)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        body = error_response(
            code=_HTTP_STATUS_TO_CODE.get(exc.status_code, BusinessCode.SYSTEM_ERROR),
            message=str(exc.detail),
            error_type="HTTPError",
            retryable=exc.status_code >= 500,
            details={"status_code": exc.status_code},
            request_id=_request_id(request),
        )
        return _json(exc.status_code, body, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        request_id = _request_id(request)
        logger.error("unhandled_exception", request_id=request_id, error=str(exc), exc_info=True)

        # 仅开发环境返回堆栈
        details = {"exception": str(exc), "traceback": traceback.format_exc()} if app.debug else None
        body = error_response(
            code=BusinessCode.SYSTEM_ERROR,
            message="Internal server error",
            error_type="SystemError",
            retryable=True,
            details=details,
            request_id=request_id,
        )
        return _json(http_status.HTTP_500_INTERNAL_SERVER_ERROR, body)
