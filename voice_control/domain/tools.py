"""
Tool schema registry.

A ``ToolRegistry`` is the immutable description of the operations a domain
exposes to the remote model. It renders the ``session.update`` event that
announces the tools, and checks incoming function-call arguments against
the declared parameter types and required fields.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from voice_control.config.logging_config import get_logger
from voice_control.utils.error_handling import MalformedFunctionCall, UnknownTool

logger = get_logger(__name__)

PARAMETER_TYPES = ("string", "number", "integer")


@dataclass(frozen=True)
class ToolParameter:
    """One argument of a tool."""

    name: str
    type: str
    description: str
    required: bool = False

    def __post_init__(self):
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unsupported parameter type '{self.type}' for '{self.name}'")

    def to_schema(self) -> Dict[str, Any]:
        return {"type": self.type, "description": self.description}

    def accepts(self, value: Any) -> bool:
        """Check a decoded JSON value against the declared primitive type."""
        if self.type == "string":
            return isinstance(value, str)
        if isinstance(value, bool):
            # bool is an int subclass but never a valid number here
            return False
        if self.type == "number":
            return isinstance(value, (int, float))
        return isinstance(value, int) or (isinstance(value, float) and value.is_integer())


@dataclass(frozen=True)
class ToolSpec:
    """A named, schema-described operation the remote model may invoke."""

    name: str
    description: str
    parameters: Tuple[ToolParameter, ...] = ()

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters if p.required)

    def to_schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": list(self.required),
            },
        }

    @classmethod
    def from_schema(cls, schema: Mapping[str, Any]) -> 'ToolSpec':
        """Build a tool from an OpenAI-style function tool definition."""
        parameters = schema.get("parameters", {})
        required = set(parameters.get("required", []))
        params = tuple(
            ToolParameter(
                name=name,
                type=prop["type"],
                description=prop.get("description", ""),
                required=name in required,
            )
            for name, prop in parameters.get("properties", {}).items()
        )
        unknown = required.difference(p.name for p in params)
        if unknown:
            raise ValueError(f"Tool '{schema['name']}' requires undeclared parameters: {sorted(unknown)}")
        return cls(name=schema["name"], description=schema.get("description", ""), parameters=params)


class ToolRegistry:
    """
    Immutable set of tools plus the instructions sent alongside them.

    The registry is built once per domain and shared; ``session_update``
    returns a fresh event each call so callers may mutate the result.
    """

    def __init__(self, tools: Tuple[ToolSpec, ...], instructions: str = "", tool_choice: str = "auto"):
        names = [tool.name for tool in tools]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            raise ValueError(f"Duplicate tool names: {sorted(duplicates)}")

        self._tools: Dict[str, ToolSpec] = {tool.name: tool for tool in tools}
        self._instructions = instructions
        self._tool_choice = tool_choice
        self._session_update = {
            "type": "session.update",
            "session": {
                "instructions": instructions,
                "tools": [tool.to_schema() for tool in tools],
                "tool_choice": tool_choice,
            },
        }

    @classmethod
    def from_schemas(
        cls,
        schemas: List[Mapping[str, Any]],
        instructions: str = "",
        tool_choice: str = "auto",
    ) -> 'ToolRegistry':
        return cls(tuple(ToolSpec.from_schema(s) for s in schemas), instructions, tool_choice)

    @property
    def instructions(self) -> str:
        return self._instructions

    def names(self) -> Tuple[str, ...]:
        return tuple(self._tools)

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def session_update(self) -> Dict[str, Any]:
        """Build the ``session.update`` event announcing every tool."""
        return copy.deepcopy(self._session_update)

    def validate_arguments(self, name: str, arguments: Any) -> Dict[str, Any]:
        """
        Check function-call arguments against the named tool's schema.

        Undeclared arguments are dropped. A null value for an optional
        argument is treated as absent.

        Args:
            name: Tool name from the function call
            arguments: Decoded argument object

        Returns:
            Dict[str, Any]: Arguments restricted to the declared parameters

        Raises:
            UnknownTool: If no tool with this name was announced
            MalformedFunctionCall: If arguments violate the schema
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownTool(f"Unknown tool '{name}'", details={"tool": name})

        if not isinstance(arguments, dict):
            raise MalformedFunctionCall(
                f"Arguments for '{name}' must be an object",
                details={"tool": name, "received": type(arguments).__name__}
            )

        validated: Dict[str, Any] = {}
        for param in tool.parameters:
            value = arguments.get(param.name)
            if value is None:
                if param.required:
                    raise MalformedFunctionCall(
                        f"Missing required argument '{param.name}' for '{name}'",
                        details={"tool": name, "argument": param.name}
                    )
                continue

            if not param.accepts(value):
                raise MalformedFunctionCall(
                    f"Argument '{param.name}' for '{name}' must be of type {param.type}",
                    details={"tool": name, "argument": param.name, "value": repr(value)}
                )

            validated[param.name] = int(value) if param.type == "integer" else value

        ignored = set(arguments).difference(validated, (p.name for p in tool.parameters))
        if ignored:
            logger.debug(f"Ignoring undeclared arguments for {name}: {sorted(ignored)}")

        return validated
