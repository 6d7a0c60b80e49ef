"""Mapping of bus results and error categories to HTTP responses."""

from typing import Any, Dict

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from filplus.application.bus import ErrorCategory, Result
from filplus.domain.schemas.application import CommandResponse, ErrorDetail

STATUS_BY_CATEGORY: Dict[ErrorCategory, int] = {
    ErrorCategory.VALIDATION_ERROR: 422,
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.ALREADY_EXISTS: 409,
    ErrorCategory.INVALID_TRANSITION: 409,
    ErrorCategory.CONCURRENCY_CONFLICT: 409,
    ErrorCategory.UNAUTHORIZED: 403,
    ErrorCategory.COLLABORATOR_UNAVAILABLE: 503,
    ErrorCategory.NO_HANDLER_REGISTERED: 500,
    ErrorCategory.INTERNAL_ERROR: 500,
}


def status_for(category: ErrorCategory) -> int:
    return STATUS_BY_CATEGORY.get(category, 500)


def error_body(category: ErrorCategory, message: str) -> Dict[str, Any]:
    return {"detail": message, "category": category.value}


def command_response(result: Result, success_status: int = 200) -> JSONResponse:
    if result.success:
        body = CommandResponse(success=True, data=result.data)
        return JSONResponse(status_code=success_status, content=jsonable_encoder(body))
    body = CommandResponse(
        success=False,
        error=ErrorDetail(category=result.error_category.value, message=result.error or ""),
    )
    return JSONResponse(
        status_code=status_for(result.error_category),
        content=jsonable_encoder(body),
    )


def query_response(result: Result) -> JSONResponse:
    if result.success:
        return JSONResponse(status_code=200, content=jsonable_encoder(result.data))
    return JSONResponse(
        status_code=status_for(result.error_category),
        content=error_body(result.error_category, result.error or ""),
    )
