"""
Global Error Handler Middleware

Catches exceptions and returns standardized error responses. Every
error body carries the request's trace_id, and handled errors are also
recorded on the active request span.
"""

import logging
import traceback
from typing import Optional

from fastapi import Request, FastAPI
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ....core.errors import DataAccessError
from ....core.observability.propagation import TRACEPARENT_HEADER, parse_traceparent
from ....core.observability.tracing import get_current_span, get_trace_id
from ..exceptions import APIException, DatabaseError
from ..responses import ErrorBody, ErrorDetail, ErrorResponse
from ..error_codes import ErrorCode, is_server_error

logger = logging.getLogger(__name__)


def _request_trace_id(request: Request) -> Optional[str]:
    """Trace id of the active span, or of the span the middleware recorded."""
    trace_id = get_trace_id()
    if trace_id:
        return trace_id
    context = parse_traceparent(getattr(request.state, "traceparent", None))
    return context.trace_id_hex if context else None


def _annotate_span(error_type: str, message: str) -> None:
    span = get_current_span()
    if span and span.is_recording():
        span.set_attribute("error.type", error_type)
        span.set_attribute("error.message", message)


def _error_response(
    status_code: int,
    error_body: ErrorBody,
    request: Request,
    include_traceparent: bool = False
) -> JSONResponse:
    response = JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error_body).model_dump(mode="json")
    )
    traceparent = getattr(request.state, "traceparent", None)
    if include_traceparent and traceparent:
        response.headers[TRACEPARENT_HEADER] = traceparent
    return response


def register_error_handlers(app: FastAPI):
    """
    Register all error handlers on the FastAPI app.

    This function sets up exception handlers for:
    - APIException (custom API errors)
    - DataAccessError (data store failures, mapped to DATABASE_ERROR)
    - RequestValidationError (FastAPI validation)
    - Generic Exception (catch-all for unexpected errors)
    """

    @app.exception_handler(APIException)
    async def api_exception_handler(request: Request, exc: APIException):
        """Handle custom API exceptions."""
        trace_id = _request_trace_id(request)
        code = exc.code.value if isinstance(exc.code, ErrorCode) else str(exc.code)

        log = logger.error if is_server_error(exc.code) else logger.warning
        log(
            f"API Error: {code} - {exc.message}",
            extra={
                "error_code": code,
                "path": request.url.path
            }
        )
        _annotate_span(code, exc.message)

        error_body = ErrorBody(
            code=code,
            message=exc.message,
            details=exc.details,
            trace_id=trace_id
        )
        return _error_response(exc.status_code, error_body, request)

    @app.exception_handler(DataAccessError)
    async def data_access_exception_handler(request: Request, exc: DataAccessError):
        """Handle data store failures raised below the API layer."""
        logger.error(
            f"Data access error: {exc.detail}",
            extra={"path": request.url.path}
        )
        _annotate_span(type(exc).__name__, exc.detail)

        api_exc = DatabaseError(exc.message)
        error_body = ErrorBody(
            code=api_exc.code.value,
            message=api_exc.message,
            trace_id=_request_trace_id(request)
        )
        return _error_response(api_exc.status_code, error_body, request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle FastAPI validation errors."""
        details = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            details.append(ErrorDetail(
                field=field,
                message=error["msg"],
                code=error["type"]
            ))

        logger.warning(
            f"Validation Error: {len(details)} field(s)",
            extra={
                "path": request.url.path,
                "errors": [d.model_dump() for d in details]
            }
        )

        error_body = ErrorBody(
            code=ErrorCode.VALIDATION_ERROR.value,
            message="Request validation failed",
            details=details,
            trace_id=_request_trace_id(request)
        )
        return _error_response(400, error_body, request)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Runs outside the tracing middleware, after the request span has
        closed, so the traceparent recorded on request.state is echoed.
        """
        logger.error(
            f"Unhandled Exception: {type(exc).__name__}: {exc}",
            extra={
                "path": request.url.path,
                "traceback": traceback.format_exc()
            }
        )

        # Don't expose internal details in production
        error_body = ErrorBody(
            code=ErrorCode.INTERNAL_ERROR.value,
            message="An internal error occurred",
            trace_id=_request_trace_id(request)
        )
        return _error_response(500, error_body, request, include_traceparent=True)
