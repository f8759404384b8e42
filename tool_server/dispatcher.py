"""
Tool dispatcher.

Resolves a call through the registry, validates its params, invokes the handler and
normalizes whatever happens into a ResultEnvelope. Exceptions never escape
:meth:`Dispatcher.dispatch`: caller mistakes and handler crashes both come back as
Failure envelopes with stable JSON-RPC codes. There are no retries.
"""

import logging
from typing import Any, Dict, List

from error_handling import (
    HandlerError,
    UnknownToolError,
    ValidationError,
    get_tracer,
    log_error,
)

from .base import ToolResult
from .protocol import CallRequest, ResultEnvelope
from .registry import ToolRegistry
from .validation import validate

logger = logging.getLogger("tool_server.dispatcher")


def _as_content(result: Any) -> List[Dict[str, Any]]:
    if isinstance(result, ToolResult):
        return result.to_dict()["content"]
    if isinstance(result, str):
        return ToolResult.text(result).content
    raise TypeError(f"Tool handler returned {type(result).__name__}, expected ToolResult")


class Dispatcher:
    """Single-attempt pass-through from a CallRequest to a ResultEnvelope."""

    def __init__(self, registry: ToolRegistry):
        self.registry = registry

    async def dispatch(self, request: CallRequest) -> ResultEnvelope:
        correlation_id = request.correlation_id
        log_context = {"tool": request.tool_name, "correlation_id": correlation_id}

        tracer = get_tracer()
        with tracer.start_as_current_span("mcp.tool.call") as span:
            span.set_attribute("mcp.tool.name", request.tool_name)

            try:
                definition = self.registry.lookup(request.tool_name)
                params = validate(definition, request.params)
            except (UnknownToolError, ValidationError) as exc:
                span.set_attribute("mcp.tool.status", "rejected")
                span.set_attribute("mcp.tool.error_code", int(exc.code))
                log_error(exc, logger, level=logging.WARNING, extra={"correlation_id": correlation_id})
                return ResultEnvelope.failure(exc.code, exc.message, correlation_id)

            logger.info("Dispatching tool call", extra=log_context)
            try:
                content = _as_content(await definition.handler(params))
                envelope = ResultEnvelope.success(content, correlation_id)
            except Exception as exc:
                error = HandlerError(definition.name, exc)
                span.set_attribute("mcp.tool.status", "error")
                span.set_attribute("mcp.tool.error", error.message)
                span.record_exception(exc)
                log_error(error, logger, extra={"correlation_id": correlation_id})
                return ResultEnvelope.failure(error.code, error.message, correlation_id)

            span.set_attribute("mcp.tool.status", "success")
            return envelope
