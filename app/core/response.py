# app/core/response.py
from typing import Any, Optional, Literal, Dict
from pydantic import BaseModel
from fastapi.responses import JSONResponse
import traceback
from app.core.config import settings


class ErrorDetail(BaseModel):
    """Detailed error information for debugging"""
    field: Optional[str] = None
    message: str
    code: Optional[str] = None


class ResponseModel(BaseModel):
    status: Literal["success", "error"] | bool
    message: str
    data: Optional[Any] = None


class ErrorResponseModel(BaseModel):
    """Error response compatible with Paystack's `status: false` envelope"""
    status: Literal["error"] | bool = False
    message: str
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Optional[list[ErrorDetail]] = None
    # Only include debug info in development
    debug_info: Optional[Dict[str, Any]] = None


def success_response(
    message: str = "OK", data: Any = None, status_code: int = 200
) -> JSONResponse:
    """Create a success response for endpoints that do not relay provider JSON"""
    payload = ResponseModel(status="success", message=message, data=data).model_dump(
        exclude_none=True
    )
    return JSONResponse(status_code=status_code, content=payload)


def verified_response(message: str, data: Any = None) -> JSONResponse:
    """Verification result in the provider-style `status: true` envelope"""
    payload = ResponseModel(status=True, message=message, data=data).model_dump(
        exclude_none=True
    )
    return JSONResponse(status_code=200, content=payload)


def error_response(
    message: str,
    status_code: int = 400,
    error: Optional[str] = None,
    error_code: Optional[str] = None,
    details: Optional[list[ErrorDetail]] = None,
    status: Literal["error"] | bool = False,
) -> JSONResponse:
    """Error response; debug info is attached only when DEBUG is on"""
    debug_info = None
    if settings.DEBUG and error_code:
        debug_info = {
            "traceback": traceback.format_exc(),
            "environment": settings.ENVIRONMENT
        }

    payload = ErrorResponseModel(
        status=status,
        message=message,
        error=error,
        error_code=error_code,
        details=details,
        debug_info=debug_info,
    ).model_dump(exclude_none=True)

    return JSONResponse(status_code=status_code, content=payload)


def validation_error_response(
    errors: list[Dict[str, Any]],
    status_code: int = 422
) -> JSONResponse:
    """Create a standardized validation error response"""
    details = []
    for err in errors:
        loc = err.get("loc", [])
        field = ".".join(str(x) for x in loc if x != "body")
        details.append(ErrorDetail(
            field=field or (str(loc[-1]) if loc else None),
            message=err.get("msg", "Validation error"),
            code="VALIDATION_ERROR"
        ))

    return error_response(
        message="Invalid request parameters",
        details=details,
        status_code=status_code,
        error_code="VALIDATION_ERROR"
    )
