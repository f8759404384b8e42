"""In-memory registry of tool definitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Tuple

from error_handling import DuplicateToolError, UnknownToolError

from .base import ToolResult
from .validation import PARAMETER_TYPES

logger = logging.getLogger("tool_server.registry")

ToolHandler = Callable[[Dict[str, Any]], Awaitable[ToolResult]]


@dataclass(frozen=True)
class ParameterSpec:
    """One named input parameter of a tool."""

    name: str
    type: str
    description: str = ""
    required: bool = True

    def __post_init__(self):
        if self.type not in PARAMETER_TYPES:
            raise ValueError(
                f"Unsupported parameter type '{self.type}' for '{self.name}', "
                f"expected one of: {', '.join(sorted(PARAMETER_TYPES))}"
            )

    def json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type}
        if self.description:
            schema["description"] = self.description
        return schema


@dataclass(frozen=True)
class ToolDefinition:
    """A named, schema-described async tool."""

    name: str
    description: str
    handler: ToolHandler = field(compare=False)
    parameters: Tuple[ParameterSpec, ...] = ()

    def __post_init__(self):
        parameters = tuple(self.parameters)
        names = [spec.name for spec in parameters]
        if len(set(names)) != len(names):
            raise ValueError(f"Tool '{self.name}' declares a parameter more than once")
        object.__setattr__(self, "parameters", parameters)

    @property
    def input_schema(self) -> Dict[str, Any]:
        """JSON schema view of the declared parameters, in declaration order."""
        return {
            "type": "object",
            "properties": {spec.name: spec.json_schema() for spec in self.parameters},
            "required": [spec.name for spec in self.parameters if spec.required],
        }

    def as_mcp_tool(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


class ToolRegistry:
    """Maps tool names to definitions.

    Tools are registered once while the application is assembled. After
    :meth:`freeze` the registry is read-only, so concurrent dispatches can share it
    without locking.
    """

    def __init__(self, definitions: Iterable[ToolDefinition] = ()) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._frozen = False
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        if self._frozen:
            raise RuntimeError("Tool registry is frozen; register tools before the server starts")
        if definition.name in self._tools:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition
        logger.info(f"Registered tool: {definition.name}")
        return definition

    def lookup(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name, self.list_names()) from None

    def list_names(self) -> List[str]:
        return sorted(self._tools)

    def list_tools(self) -> List[Dict[str, Any]]:
        """Discovery metadata for every registered tool."""
        return [self._tools[name].as_mcp_tool() for name in self.list_names()]

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
