"""
Tool Server

Registry, validation, dispatch and SSE streaming for named async tools, plus the
built-in calculate-tax and get-weather tools.
"""

from .base import ServerSettings, ToolResult
from .dispatcher import Dispatcher
from .protocol import CallRequest, Notification, ResultEnvelope
from .registry import ParameterSpec, ToolDefinition, ToolRegistry
from .streaming import StreamingChannel, StreamSession
from .validation import validate

__all__ = [
    "CallRequest",
    "Dispatcher",
    "Notification",
    "ParameterSpec",
    "ResultEnvelope",
    "ServerSettings",
    "StreamSession",
    "StreamingChannel",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "validate",
]
