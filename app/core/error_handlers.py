from fastapi import Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.constants.error_codes import ErrorCode
from app.core.exceptions import AppException
from app.utils.response import error_response
import logging

logger = logging.getLogger(__name__)


# -------------------------
# APP EXCEPTIONS
# -------------------------
async def app_exception_handler(request: Request, exc: AppException):
    if exc.status_code >= 500:
        logger.error(
            "Application error",
            extra={"path": request.url.path, "error_code": exc.error_code.value},
        )
    elif exc.status_code == 409:
        # rejected transitions and lost races
        logger.info(
            "Conflict: %s",
            exc.detail,
            extra={"path": request.url.path, "error_code": exc.error_code.value},
        )

    return error_response(exc.status_code, exc.detail, exc.error_code, exc.details)


# -------------------------
# FASTAPI VALIDATION
# -------------------------
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
        for e in exc.errors()
    ]
    return error_response(422, "Invalid request data", ErrorCode.VALIDATION_ERROR, errors)


# -------------------------
# HTTP EXCEPTIONS (mapped)
# -------------------------
HTTP_STATUS_TO_ERROR_CODE = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    409: ErrorCode.CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
):
    error_code = HTTP_STATUS_TO_ERROR_CODE.get(
        exc.status_code,
        ErrorCode.INTERNAL_ERROR,
    )
    return error_response(exc.status_code, exc.detail, error_code)


# -------------------------
# DB INTEGRITY ERRORS
# -------------------------
async def integrity_error_handler(
    request: Request, exc: IntegrityError
):
    logger.exception("DB Integrity error")
    return error_response(409, "Database constraint violation", ErrorCode.CONFLICT)


# -------------------------
# DB CONNECTIVITY / DRIVER ERRORS
# -------------------------
async def storage_error_handler(
    request: Request, exc: SQLAlchemyError
):
    logger.exception(
        "Storage failure",
        extra={"path": request.url.path, "method": request.method},
    )
    return error_response(
        503,
        "Storage unavailable. Re-read the record before retrying.",
        ErrorCode.STORAGE_FAILURE,
    )


# -------------------------
# LAST RESORT
# -------------------------
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        500,
        "Something went wrong. Please try again.",
        ErrorCode.INTERNAL_ERROR,
    )
