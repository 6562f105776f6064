import traceback
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.exceptions import AppError, ImageHostError, ValidationError
from core.logger import get_logger
from schemas.common import ErrorResponse

logger = get_logger("handlers")


def _error_response(request: Request, status_code: int, error: str, message: str,
                    validation_errors: dict[str, str] | None = None,
                    exc: Exception | None = None) -> JSONResponse:
    body = ErrorResponse(
        status=status_code,
        error=error,
        message=message,
        path=request.url.path,
        method=request.method,
        validation_errors=validation_errors,
        stack_trace="".join(traceback.format_exception(exc)) if exc and settings.debug else None,
    )
    return JSONResponse(status_code=status_code, content=body.to_body())


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    # 5xx만 error, 나머지(검증/비즈니스/404)는 warning
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{exc.error_code}: {exc.message}")

    field_errors = exc.field_errors if isinstance(exc, ValidationError) else None
    return _error_response(
        request, exc.status_code, exc.error_code, exc.message, field_errors,
        exc if exc.status_code >= 500 else None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """요청 검증 실패: 첫 번째 오류만이 아니라 실패한 모든 필드를 나열"""
    errors: dict[str, str] = {}
    for err in exc.errors():
        # loc 예: ("body", "username") → "username"
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors[".".join(loc) or "request"] = err.get("msg", "invalid value")

    logger.warning(f"Validation failed: {errors}")
    return _error_response(
        request, status.HTTP_400_BAD_REQUEST, "VALIDATION_FAILED", "Input validation failed", errors
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error = {
        status.HTTP_401_UNAUTHORIZED: "AUTHENTICATION_FAILED",
        status.HTTP_403_FORBIDDEN: "ACCESS_DENIED",
        status.HTTP_404_NOT_FOUND: "NOT_FOUND",
        status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
    }.get(exc.status_code, "HTTP_ERROR")
    response = _error_response(request, exc.status_code, error, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def image_host_error_handler(request: Request, exc: ImageHostError) -> JSONResponse:
    # /dropbox/* 처럼 호스트를 직접 호출하는 경로에서만 여기까지 올라옴
    logger.error(f"Image host call failed: {exc}")
    return _error_response(request, status.HTTP_502_BAD_GATEWAY, "IMAGE_HOST_ERROR", exc.message)


async def stale_data_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    # version_id_col 충돌: 다른 요청이 먼저 수정함
    logger.warning(f"Optimistic lock conflict: {exc}")
    return _error_response(
        request, status.HTTP_409_CONFLICT, "CONCURRENT_MODIFICATION",
        "The resource was modified concurrently, please retry",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """예상하지 못한 예외: 내부 정보 노출 없이 일반 메시지로 축소"""
    logger.error(f"Unexpected error occurred: {exc}", exc_info=exc)
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_SERVER_ERROR",
        "An unexpected error occurred", exc=exc,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(ImageHostError, image_host_error_handler)
    app.add_exception_handler(StaleDataError, stale_data_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
