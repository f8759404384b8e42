"""
Application wiring: logging, tracing and error handling for the FastAPI app,
plus the route decorator that turns stray exceptions into ToolServerErrors.
"""
import logging
from dataclasses import dataclass
from functools import wraps
from typing import Optional

from fastapi import Depends, FastAPI, Request

logger = logging.getLogger("tool_server.error_handling")


@dataclass
class ErrorHandlingConfig:
    """Settings consumed by :func:`setup_app`."""
    service_name: str = "tool-server"
    environment: str = "development"
    otlp_endpoint: Optional[str] = None
    enable_tracing: bool = True
    log_level: str = "INFO"
    service_version: str = "1.0.0"


def setup_app(app: FastAPI, config: Optional[ErrorHandlingConfig] = None) -> FastAPI:
    """Configure logging, then tracing (when enabled), then the error middleware."""
    config = config or ErrorHandlingConfig()

    logging.basicConfig(level=config.log_level)
    logging.getLogger("tool_server").setLevel(config.log_level)

    # Import here to avoid circular dependency
    from .tracing import setup_tracing, instrument_fastapi
    from .middleware import setup_error_handling

    if config.enable_tracing:
        setup_tracing(
            service_name=config.service_name,
            environment=config.environment,
            otlp_endpoint=config.otlp_endpoint,
            service_version=config.service_version,
        )
        instrument_fastapi(app)

    setup_error_handling(app, service_name=config.service_name)
    return app


def handle_errors(func):
    """
    Route decorator: ToolServerErrors pass through, anything else is logged with
    the request ID and re-raised as a ToolServerError (-32000, HTTP 500).
    """
    @wraps(func)
    async def wrapper(*args, **kwargs):
        # Import here to avoid circular dependency
        from error_handling import ToolServerError

        try:
            return await func(*args, **kwargs)
        except ToolServerError:
            raise
        except Exception as e:
            request = next(
                (arg for arg in (*args, *kwargs.values()) if isinstance(arg, Request)),
                None,
            )
            request_id = getattr(getattr(request, "state", None), "request_id", "")
            logger.error(
                str(e),
                extra={"function": func.__name__, "request_id": request_id},
                exc_info=True,
            )
            raise ToolServerError.from_exception(e) from e

    return wrapper


def get_request_id():
    """Dependency exposing the request ID assigned by the error middleware."""
    async def _get_request_id(request: Request) -> str:
        return getattr(request.state, "request_id", "")
    return Depends(_get_request_id)


__all__ = [
    'ErrorHandlingConfig',
    'setup_app',
    'handle_errors',
    'get_request_id',
]
