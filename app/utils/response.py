# app/utils/response.py

from typing import TypeVar, Generic, Optional, Dict, Any

from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from app.constants.error_codes import ErrorCode

T = TypeVar("T")


def success_response(message: str, data: Optional[T] = None) -> Dict[str, Any]:
    return {
        "success": True,
        "message": message,
        "data": data,
    }


def error_response(
    status_code: int,
    message: str,
    error_code: ErrorCode,
    details: Any = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error_code": error_code.value,
            "details": jsonable_encoder(details),
        },
    )


class APIResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str
    data: Optional[T] = None


class ErrorResponse(BaseModel):
    """Body of every non-2xx response."""

    success: bool = False
    message: str
    error_code: ErrorCode
    details: Optional[Any] = None


# Documented on every router; the bodies come from app.core.error_handlers
ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (401, 403, 404, 409, 422, 503)
}
