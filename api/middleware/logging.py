"""
访问日志中间件

每个请求在结束时记录一条日志：方法、路径、路径参数、状态码与耗时。
请求体与签名头从不记录，webhook 内容只在业务日志里以关联字段出现。
"""
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging_config import get_logger


logger = get_logger(__name__)


class LoggingMiddleware(BaseHTTPMiddleware):
    QUIET_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        fields = self._describe(request)
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "http_request_crashed",
                duration_ms=self._elapsed_ms(started),
                error_type=type(exc).__name__,
                exc_info=True,
                **fields,
            )
            raise

        duration_ms = self._elapsed_ms(started)
        response.headers["X-Process-Time"] = f"{duration_ms / 1000:.3f}"

        status_code = response.status_code
        log = logger.info if status_code < 400 else logger.warning if status_code < 500 else logger.error
        log("http_request", status_code=status_code, duration_ms=duration_ms, **fields)
        return response

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    @staticmethod
    def _describe(request: Request) -> dict:
        fields = {"method": request.method, "path": request.url.path}
        if request.query_params:
            fields["query_params"] = dict(request.query_params)
        if request.path_params:
            fields["path_params"] = dict(request.path_params)
        for header, key in (("content-length", "content_length"), ("user-agent", "user_agent")):
            value = request.headers.get(header)
            if value:
                fields[key] = value
        return fields
