"""
Error handling middleware for FastAPI applications.

This module provides middleware to catch and process exceptions in a consistent way.
Escaped exceptions are rendered as JSON-RPC error bodies so that callers see the same
framing for transport failures as for dispatched calls.
"""
import logging
import uuid
from typing import Callable
from fastapi import Request
from fastapi.responses import JSONResponse
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request as StarletteRequest

logger = logging.getLogger("tool_server.error_handling")


def _current_trace_id() -> str:
    span = trace.get_current_span()
    span_context = span.get_span_context() if span else None
    if span_context is None or not span_context.is_valid:
        return ""
    return format(span_context.trace_id, "032x")


def _error_headers(request_id: str, trace_id: str) -> dict:
    headers = {"X-Request-ID": request_id, "Cache-Control": "no-store"}
    if trace_id:
        headers["X-Trace-ID"] = trace_id
    return headers


def render_error(exc: Exception, request_id: str, trace_id: str) -> JSONResponse:
    """Build the JSON-RPC error response for an exception."""
    # Import here to avoid circular dependency
    from error_handling import ToolServerError, TransportError, ErrorResponse

    if not isinstance(exc, ToolServerError):
        exc = ToolServerError.from_exception(exc)

    correlation_id = exc.correlation_id if isinstance(exc, TransportError) else None
    error_response = ErrorResponse(
        id=correlation_id,
        error=exc.to_dict(request_id=request_id, trace_id=trace_id)
    )
    return JSONResponse(
        content=error_response.model_dump(),
        status_code=exc.status_code,
        headers=_error_headers(request_id, trace_id)
    )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for handling exceptions and formatting error responses."""

    def __init__(self, app, service_name: str = "tool-server"):
        super().__init__(app)
        self.service_name = service_name

    async def dispatch(self, request: StarletteRequest, call_next: Callable):
        """Process the request and handle any exceptions."""
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        trace_id = _current_trace_id()

        try:
            response = await call_next(request)

            response.headers["X-Request-ID"] = request_id
            if trace_id:
                response.headers["X-Trace-ID"] = trace_id

            return response

        except Exception as exc:
            return self._handle_exception(exc, request_id, trace_id, request)

    def _handle_exception(
        self,
        exc: Exception,
        request_id: str,
        trace_id: str,
        request: StarletteRequest
    ) -> JSONResponse:
        """Log an exception and return an appropriate response."""
        from error_handling import ToolServerError, log_error

        error = ToolServerError.from_exception(exc)
        log_error(
            error,
            logger,
            request_id=request_id,
            level=logging.ERROR if error.status_code >= 500 else logging.WARNING,
            extra={
                "path": request.url.path,
                "method": request.method,
                "trace_id": trace_id,
                "service": self.service_name,
            }
        )
        return render_error(error, request_id, trace_id)


def setup_error_handling(app, service_name: str = "tool-server") -> None:
    """Set up error handling middleware for a FastAPI application."""
    from error_handling import ToolServerError, log_error

    app.add_middleware(ErrorHandlingMiddleware, service_name=service_name)

    @app.exception_handler(ToolServerError)
    async def tool_server_error_handler(request: Request, exc: ToolServerError) -> JSONResponse:
        """Handle ToolServerError exceptions raised by route handlers."""
        request_id = getattr(request.state, "request_id", "") or request.headers.get("x-request-id", "")
        trace_id = _current_trace_id()

        log_error(
            exc,
            logger,
            request_id=request_id,
            level=logging.WARNING if exc.status_code < 500 else logging.ERROR,
            extra={
                "path": request.url.path,
                "method": request.method,
                "trace_id": trace_id,
            }
        )
        return render_error(exc, request_id, trace_id)

    @app.exception_handler(500)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        request_id = getattr(request.state, "request_id", "") or request.headers.get("x-request-id", str(uuid.uuid4()))
        trace_id = _current_trace_id()

        logger.error(
            f"Unhandled exception: {str(exc)}",
            exc_info=exc,
            extra={
                "request_id": request_id,
                "trace_id": trace_id,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return render_error(exc, request_id, trace_id)


__all__ = [
    'ErrorHandlingMiddleware',
    'setup_error_handling',
    'render_error',
]
