"""中间件模块 - 管理接口的错误处理与请求日志"""

import logging
import time
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .errors import AssetOpsError, ErrorKind

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_RECORD: 422,
    ErrorKind.STORE_IO: 502,
    ErrorKind.UNEXPECTED: 500,
}


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """错误处理中间件"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"未处理异常: {str(e)}", exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "success": False,
                    "error": "内部服务器错误",
                    "type": "internal_error",
                    "message": str(e) if logger.isEnabledFor(logging.DEBUG) else "服务器内部错误",
                },
            )


class LoggingMiddleware(BaseHTTPMiddleware):
    """日志记录中间件"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        logger.info(f"请求开始: {request.method} {request.url.path}")
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"请求失败: {request.method} {request.url.path} - "
                f"错误: {str(e)} - 耗时: {process_time:.3f}s"
            )
            raise
        process_time = time.time() - start_time
        logger.info(
            f"请求完成: {request.method} {request.url.path} - "
            f"状态码: {response.status_code} - 耗时: {process_time:.3f}s"
        )
        response.headers["X-Process-Time"] = str(process_time)
        return response


def handle_assetops_error(request: Request, exc: AssetOpsError):
    """处理引擎异常"""
    logger.error(f"引擎异常: {exc.error_type} - {exc.message}")
    status_code = 503 if exc.error_type == "setup_error" else STATUS_BY_KIND.get(exc.kind, 500)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": exc.message, "type": exc.error_type},
    )


def handle_http_exception(request: Request, exc: StarletteHTTPException):
    """处理 HTTP 异常，返回与引擎异常相同的结构"""
    logger.warning(f"HTTP异常: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail, "type": "http_exception"},
        headers=getattr(exc, "headers", None),
    )


def setup_middleware(app: FastAPI):
    """设置中间件"""
    # 错误处理在最外层
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_exception_handler(AssetOpsError, handle_assetops_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
