"""Pydantic contracts for the JSON-RPC style call protocol."""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    confloat,
    field_validator,
    model_validator,
)

CorrelationId = Union[StrictInt, confloat(strict=True, allow_inf_nan=False), str]

SERVER_NOTIFICATION = "serverNotification"


class TextContent(BaseModel):
    """A single content item of a successful tool result."""

    type: str = "text"
    text: str


class CallRequest(BaseModel):
    """Inbound tool call.

    Accepts both ``{toolName, params, correlationId}`` and the JSON-RPC spelling
    ``{method, params, id}``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    tool_name: str = Field(..., validation_alias=AliasChoices("toolName", "method"))
    params: Dict[str, Any]
    correlation_id: Optional[CorrelationId] = Field(
        default=None, validation_alias=AliasChoices("correlationId", "id")
    )
    stream: bool = Field(default=False, description="Request streaming semantics")

    @field_validator("tool_name")
    @classmethod
    def _normalize_tool(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("toolName must not be empty")
        return normalized

    @property
    def wants_stream(self) -> bool:
        return self.stream or self.params.get("stream") is True


class ToolOutput(BaseModel):
    content: List[TextContent]


class ErrorObject(BaseModel):
    code: int
    message: str


class ResultEnvelope(BaseModel):
    """Normalized response for every dispatched call: exactly one of result/error."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[CorrelationId] = None
    result: Optional[ToolOutput] = None
    error: Optional[ErrorObject] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "ResultEnvelope":
        if (self.result is None) == (self.error is None):
            raise ValueError("envelope must carry exactly one of result or error")
        return self

    @classmethod
    def success(
        cls,
        content: List[Dict[str, Any]],
        correlation_id: Optional[CorrelationId] = None,
    ) -> "ResultEnvelope":
        return cls(id=correlation_id, result=ToolOutput(content=content))

    @classmethod
    def failure(
        cls,
        code: int,
        message: str,
        correlation_id: Optional[CorrelationId] = None,
    ) -> "ResultEnvelope":
        return cls(id=correlation_id, error=ErrorObject(code=int(code), message=message))

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for the wire; ``id`` is always present, ``null`` when absent."""
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            payload["error"] = self.error.model_dump()
        else:
            payload["result"] = self.result.model_dump()
        return payload


class Notification(BaseModel):
    """Server-initiated message that is not tied to a call."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str = SERVER_NOTIFICATION
    params: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def message(cls, text: str) -> "Notification":
        return cls(params={"message": text})

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump()
