"""
Tool Server HTTP Application Factory

Creates the FastAPI application that exposes the tool registry over HTTP.

Architecture:
- POST /mcp parses the call envelope, hands it to the Dispatcher and answers with one
  JSON message, or with an SSE stream opened through the StreamingChannel
- GET /mcp opens a server-initiated notification stream
- GET /mcp/tools, GET /health and GET / expose discovery and status information
- Malformed envelopes never reach the Dispatcher; they are rejected with HTTP 400
"""

import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError as PydanticValidationError

from error_handling import (
    ErrorCode,
    ErrorHandlingConfig,
    TransportError,
    get_request_id,
    handle_errors,
    setup_app,
    trace_span,
)

from .base import ServerSettings
from .dispatcher import Dispatcher
from .protocol import CallRequest
from .registry import ToolRegistry
from .streaming import StreamingChannel, StreamSession
from .tools import build_registry
from .weather_server import WeatherClient

logger = logging.getLogger("tool_server.http")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


def _correlation_id(body: Dict[str, Any]) -> Optional[Union[str, int, float]]:
    value = body.get("correlationId", body.get("id"))
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


async def parse_call_request(request: Request) -> CallRequest:
    """Turn the raw request body into a CallRequest or raise TransportError."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise TransportError("Parse error: request body is not valid JSON", code=ErrorCode.PARSE_ERROR) from exc

    if not isinstance(body, dict):
        raise TransportError("Invalid request: body must be a JSON object")

    correlation_id = _correlation_id(body)
    if "toolName" not in body and "method" not in body:
        raise TransportError("Missing required field: toolName", correlation_id=correlation_id)
    if "params" not in body:
        raise TransportError("Missing required field: params", correlation_id=correlation_id)

    try:
        return CallRequest.model_validate(body)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'body'}: {error['msg']}"
            for error in exc.errors()
        )
        raise TransportError(f"Invalid request: {problems}", correlation_id=correlation_id) from exc


def _wants_event_stream(call: CallRequest, request: Request) -> bool:
    return call.wants_stream or request.headers.get("accept", "").startswith("text/event-stream")


def _sse_response(session: StreamSession, request: Request) -> StreamingResponse:
    return StreamingResponse(
        session.events(is_disconnected=request.is_disconnected),
        media_type="text/event-stream",
        headers={**SSE_HEADERS, "X-Stream-Session": session.session_id},
    )


def create_mcp_http_app(
    settings: Optional[ServerSettings] = None,
    registry: Optional[ToolRegistry] = None,
    config: Optional[ErrorHandlingConfig] = None,
) -> FastAPI:
    """
    Creates the tool server FastAPI application.

    Args:
        settings: Runtime settings (defaults to ServerSettings.from_env())
        registry: Pre-built tool registry; when omitted the built-in tools are
            registered around a WeatherClient owned by the application
        config: Error handling and tracing configuration derived from settings
            when omitted

    Returns:
        FastAPI application implementing:
        - POST /mcp -> tool call (JSON or SSE)
        - GET /mcp -> server notification stream (SSE)
        - GET /mcp/tools -> tool discovery
        - GET /health -> {"status": "ok", ...}
    """
    settings = settings or ServerSettings.from_env()

    weather_client: Optional[WeatherClient] = None
    if registry is None:
        weather_client = WeatherClient.from_settings(settings)
        registry = build_registry(weather_client)
    registry.freeze()

    dispatcher = Dispatcher(registry)
    channel = StreamingChannel(
        dispatcher,
        heartbeat_interval_ms=settings.heartbeat_interval_ms,
        completion_delay_ms=settings.completion_delay_ms,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.service_name} with tools: {', '.join(registry.list_names())}")
        yield
        logger.info("Shutting down, closing open streams...")
        channel.close_all()
        if weather_client is not None:
            await weather_client.aclose()
            logger.info("Weather client closed")

    app = FastAPI(
        title=settings.service_name,
        version=settings.service_version,
        description="Tool server exposing calculate-tax and get-weather over JSON-RPC and SSE",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.channel = channel

    config = config or ErrorHandlingConfig(
        service_name=settings.service_name,
        environment=settings.environment,
        otlp_endpoint=settings.otlp_endpoint or None,
        enable_tracing=settings.enable_tracing,
        log_level=settings.log_level,
        service_version=settings.service_version,
    )
    setup_app(app, config)

    @app.get("/")
    @handle_errors
    async def root():
        """Service information."""
        return {
            "service": settings.service_name,
            "version": settings.service_version,
            "status": "running",
            "endpoints": {
                "call": "POST /mcp",
                "notifications": "GET /mcp",
                "tools": "GET /mcp/tools",
                "health": "GET /health",
            },
        }

    @app.get("/health")
    @handle_errors
    async def health():
        """Health check endpoint for monitoring."""
        return {
            "status": "ok",
            "service": settings.service_name,
            "version": settings.service_version,
            "tools": registry.list_names(),
            "open_streams": channel.open_sessions,
        }

    @app.get("/mcp/tools")
    @handle_errors
    @trace_span("mcp.list_tools", attributes={"component": "list_tools"})
    async def list_tools():
        """List all registered tools with their input schemas."""
        tools = registry.list_tools()
        return {"total_tools": len(tools), "tools": tools}

    @app.post("/mcp")
    @handle_errors
    async def call_tool(request: Request, request_id: str = get_request_id()):
        """Dispatch one tool call; answer with JSON or an SSE stream."""
        call = await parse_call_request(request)
        logger.info(
            f"Tool call received: {call.tool_name}",
            extra={"request_id": request_id, "correlation_id": call.correlation_id},
        )

        if _wants_event_stream(call, request):
            session = await channel.open_call_stream(call)
            return _sse_response(session, request)

        envelope = await dispatcher.dispatch(call)
        return JSONResponse(envelope.to_wire())

    @app.get("/mcp")
    @handle_errors
    async def notification_stream(request: Request):
        """Open a server-initiated notification stream."""
        session = channel.open_notification_stream()
        return _sse_response(session, request)

    logger.info(f"Created tool server app with {len(registry)} tools")
    return app
