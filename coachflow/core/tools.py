"""
Tool definitions and the closed per-run tool set.

A tool is registered once into a ToolSet when an agent builds its run; the
model can only ever invoke names in that set. Each tool declares how its
result is keyed in the result store and whether several invocations of it
may run concurrently.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from ..exceptions import ToolRegistrationError
from .store import ResultStore, StoredResult


@dataclass
class ToolContext:
    """
    What a tool sees while executing.

    ``data`` is the task-specific context built by the caller. Prior results
    are read through ``get_result``; tools never write to the store directly.
    Error payloads are not results: a failed upstream tool reads as missing.
    """

    run_id: str
    data: Any
    _store: ResultStore = field(repr=False)

    def get_result(self, key: str) -> Any:
        """Value stored under key, or None unless a tool produced it successfully."""
        stored = self._store.get(key)
        if stored is None or not stored.succeeded:
            return None
        return stored.value

    def results_with_prefix(self, prefix: str) -> dict[str, Any]:
        """Successful results whose key starts with prefix."""
        return {r.key: r.value for r in self._store.with_prefix(prefix) if r.succeeded}

    def record(self, key: str) -> Optional[StoredResult]:
        return self._store.get(key)


@dataclass
class ToolOutput:
    """
    A tool result plus rewrites of results other tools already stored.

    Tools that only produce a value can return it directly.
    """

    result: Any
    store_updates: dict[str, Any] = field(default_factory=dict)


ToolHandler = Callable[[dict, ToolContext], Any]


@dataclass
class Tool:
    """Metadata and handler for a tool - defined once per agent."""

    name: str
    description: str
    input_schema: dict
    handler: ToolHandler
    key_fn: Optional[Callable[[dict], Optional[str]]] = None
    parallelizable: bool = False

    def storage_key(self, tool_input: dict, tool_use_id: str = "") -> str:
        """
        Result store key for one invocation; defaults to the tool name.

        When the input does not identify a target (key_fn returns None or
        cannot read its field) the key falls back to the invocation id, so
        malformed calls never share a slot.
        """
        if self.key_fn is None:
            return self.name
        try:
            key = self.key_fn(tool_input or {})
        except (KeyError, TypeError, ValueError):
            key = None
        if not key:
            return f"{self.name}:{tool_use_id or 'invalid'}"
        return key

    def execute(self, tool_input: dict, context: ToolContext) -> Any:
        return self.handler(tool_input, context)

    def to_schema(self) -> dict:
        """OpenAI function-calling definition for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.input_schema,
            },
        }


class ToolSet:
    """The closed set of tools available to one run."""

    def __init__(self, tools: Optional[list[Tool]] = None) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Add a tool; names must be unique within the set."""
        if not tool.name:
            raise ToolRegistrationError("Tool name must not be empty")
        if tool.name in self._tools:
            raise ToolRegistrationError(f"Tool '{tool.name}' is already registered")
        if not isinstance(tool.input_schema, dict) or tool.input_schema.get("type") != "object":
            raise ToolRegistrationError(
                f"Tool '{tool.name}' input schema must be a JSON object schema"
            )
        self._tools[tool.name] = tool

    def get(self, name: str) -> Optional[Tool]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def schemas(self) -> list[dict]:
        """All tool schemas, in registration order."""
        return [tool.to_schema() for tool in self._tools.values()]

    def summary(self) -> str:
        """Formatted summary of all tools for prompts."""
        return "\n".join(f"- {t.name}: {t.description}" for t in self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
