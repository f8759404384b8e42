"""
Error handling module for the tool server.

This module provides a structured way to handle and report errors across the application.
Every error carries a JSON-RPC numeric code so that callers can branch on it.
"""
from enum import IntEnum
from typing import Optional, Dict, Any, List, Sequence, Union
import logging
from fastapi import status
from pydantic import BaseModel, ConfigDict

# Import all from submodules to make them available at the package level
from .tracing import *
from .middleware import *
from .utils import *

# Re-export all error-related classes and functions
__all__ = [
    # Error codes and base classes
    'ErrorCode',
    'ErrorResponse',
    'ToolServerError',

    # Tool dispatch errors
    'UnknownToolError',
    'DuplicateToolError',
    'ValidationError',
    'HandlerError',
    'TransportError',

    # Utility functions
    'log_error',
    'setup_error_handling',
    'ErrorHandlingMiddleware',

    # Tracing
    'setup_tracing',
    'get_tracer',
    'trace_span',
    'instrument_fastapi',

    # Utils
    'ErrorHandlingConfig',
    'setup_app',
    'handle_errors',
    'get_request_id',
]


class ErrorCode(IntEnum):
    """JSON-RPC error codes used on the wire."""
    # Protocol errors
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Implementation-defined server errors
    SERVER_ERROR = -32000


class ErrorResponse(BaseModel):
    """Transport-level error body, framed as a JSON-RPC error message."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "jsonrpc": "2.0",
                "id": 7,
                "error": {
                    "code": -32600,
                    "message": "Missing required field: params",
                    "data": {"request_id": "req_12345", "trace_id": ""}
                }
            }
        }
    )

    jsonrpc: str = "2.0"
    id: Optional[Union[str, int, float]] = None
    error: Dict[str, Any]


class ToolServerError(Exception):
    """Base exception class for all tool server errors."""

    def __init__(
        self,
        code: Union[ErrorCode, int],
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.code = ErrorCode(code)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    def to_dict(self, request_id: str = "", trace_id: str = "") -> Dict[str, Any]:
        """Convert the error to a JSON-RPC error object."""
        return {
            "code": int(self.code),
            "message": self.message,
            "data": {
                **self.details,
                "request_id": request_id,
                "trace_id": trace_id,
            }
        }

    @classmethod
    def from_exception(cls, exc: Exception) -> 'ToolServerError':
        """Create a ToolServerError from a generic exception."""
        if isinstance(exc, ToolServerError):
            return exc
        return cls(
            code=ErrorCode.SERVER_ERROR,
            message=str(exc) or "An unknown error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"exception_type": exc.__class__.__name__},
            cause=exc
        )


class UnknownToolError(ToolServerError):
    """The caller asked for a tool that is not registered."""

    def __init__(self, tool: str, supported: Sequence[str]):
        self.tool = tool
        self.supported: List[str] = list(supported)
        super().__init__(
            code=ErrorCode.METHOD_NOT_FOUND,
            message=f"Unknown tool: {tool}, supported: {', '.join(self.supported)}",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"tool": tool, "supported": self.supported}
        )


class DuplicateToolError(ToolServerError):
    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(
            code=ErrorCode.INTERNAL_ERROR,
            message=f"Tool already registered: {tool}",
            details={"tool": tool}
        )


class ValidationError(ToolServerError):
    """A call's params do not satisfy the tool's input schema."""

    def __init__(self, parameter: str, reason: str):
        self.parameter = parameter
        self.reason = reason
        super().__init__(
            code=ErrorCode.INVALID_PARAMS,
            message=f"Invalid parameter '{parameter}': {reason}",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"parameter": parameter, "reason": reason}
        )


class HandlerError(ToolServerError):
    """Unexpected exception raised inside a tool handler."""

    def __init__(self, tool: str, cause: Exception):
        self.tool = tool
        super().__init__(
            code=ErrorCode.SERVER_ERROR,
            message=str(cause) or cause.__class__.__name__,
            details={"tool": tool, "exception_type": cause.__class__.__name__},
            cause=cause
        )


class TransportError(ToolServerError):
    """Malformed request envelope rejected before it reaches the dispatcher."""

    def __init__(
        self,
        message: str,
        code: Union[ErrorCode, int] = ErrorCode.INVALID_REQUEST,
        correlation_id: Optional[Union[str, int, float]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.correlation_id = correlation_id
        super().__init__(
            code=code,
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


def log_error(
    error: Exception,
    logger: logging.Logger,
    request_id: str = "",
    level: int = logging.ERROR,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """
    Helper function to log errors with structured context.

    Args:
        error: The exception to log
        logger: Logger instance to use
        request_id: Optional request ID for correlation
        level: Log level (default: ERROR)
        extra: Additional context to include in the log
    """
    extra = extra or {}
    if request_id:
        extra["request_id"] = request_id

    if isinstance(error, ToolServerError):
        extra.update({
            "error_code": int(error.code),
            "status_code": error.status_code,
            **error.details
        })
        if error.cause:
            extra["cause"] = str(error.cause)
    else:
        extra.update({
            "error_type": error.__class__.__name__,
            "error_message": str(error)
        })

    logger.log(level, str(error), extra=extra, exc_info=level >= logging.ERROR)
