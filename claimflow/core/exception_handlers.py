"""Exception handlers: domain and framework errors as JSON responses.

Every error body has ``error``, ``message`` and, where known, ``details``
and the ``request_id`` assigned by RequestIDMiddleware.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from claimflow.core.config import get_settings
from claimflow.domain.exceptions import ClaimFlowException

logger = logging.getLogger(__name__)

_ERROR_CODE_STATUS: dict[str, int] = {
    "RESOURCE_NOT_FOUND": 404,
    "NO_FLOW_DEFINITION": 404,
    "VALIDATION_ERROR": 400,
    "FLOW_DEFINITION_INVALID": 422,
    "FLOW_DEFINITION_IN_USE": 409,
    "FLOW_STATE_ERROR": 409,
    "FLOW_INSTANCE_CONFLICT": 409,
    "AI_RESPONSE_ERROR": 502,
    "SERVICE_UNAVAILABLE": 503,
}


def status_for_error_code(error_code: str) -> int:
    """HTTP status for a domain error code; unknown codes are client errors."""
    return _ERROR_CODE_STATUS.get(error_code, 400)


def _error_response(request: Request, status_code: int, body: dict[str, Any]) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body = {**body, "request_id": request_id}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _claimflow_exception_handler(request: Request, exc: ClaimFlowException) -> JSONResponse:
    status_code = status_for_error_code(exc.error_code)
    if status_code >= 500 or exc.error_code == "FLOW_INSTANCE_CONFLICT":
        logger.warning("%s on %s: %s", exc.error_code, request.url.path, exc.message)
    return _error_response(request, status_code, exc.to_dict())


def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(
        request,
        422,
        {"error": "VALIDATION_ERROR", "message": "Request validation failed", "details": exc.errors()},
    )


def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, {"error": "HTTP_ERROR", "message": exc.detail})


def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """500; the exception text is only exposed when debug is on."""
    logger.exception("Unhandled exception on %s", request.url.path)
    message = str(exc) if get_settings().debug else "Internal server error"
    return _error_response(request, 500, {"error": "INTERNAL_ERROR", "message": message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ClaimFlowException, _claimflow_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _generic_exception_handler)
