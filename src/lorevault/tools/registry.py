"""
Tool registry for the retrieval planner.

Centralizes tool schemas and handlers in one place.
The orchestrator delegates tool execution to the registry.
"""

import json
from typing import Any

from ..llm.base import PlannerToolCall
from .catalog import RetrievalToolCatalog
from .executors import (
    InvalidArgument,
    ToolExecutionResult,
    ToolExecutor,
    expand_neighbors,
    get_entry,
    search_entries,
)


# -----------------------------------------------------------------------------
# Tool Schemas
# -----------------------------------------------------------------------------

RETRIEVAL_SCHEMAS = [
    {
        "name": "search_entries",
        "description": "Search world_info entries by query text and optional scope.",
        "input_schema": {
            "type": "object",
            "properties": {
                "query": {"type": "string"},
                "scope": {"type": "string"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 20},
            },
            "required": ["query"],
        },
    },
    {
        "name": "expand_neighbors",
        "description": "Expand wikilink neighbors from a known entry uid.",
        "input_schema": {
            "type": "object",
            "properties": {
                "uid": {"type": "integer"},
                "scope": {"type": "string"},
                "depth": {"type": "integer", "minimum": 1, "maximum": 3},
                "limit": {"type": "integer", "minimum": 1, "maximum": 20},
            },
            "required": ["uid"],
        },
    },
    {
        "name": "get_entry",
        "description": "Fetch one entry by uid and optional scope.",
        "input_schema": {
            "type": "object",
            "properties": {
                "uid": {"type": "integer"},
                "scope": {"type": "string"},
                "contentChars": {"type": "integer", "minimum": 120, "maximum": 5000},
            },
            "required": ["uid"],
        },
    },
]

SUPPORTED_TOOL_NAMES = tuple(schema["name"] for schema in RETRIEVAL_SCHEMAS)


def is_tool_name(name: str) -> bool:
    """Whether a planner-requested name is one of the retrieval tools."""
    return name in SUPPORTED_TOOL_NAMES


def get_all_schemas() -> list[dict]:
    """Get all tool schemas as a flat list."""
    return list(RETRIEVAL_SCHEMAS)


def to_function_definition(schema: dict) -> dict:
    """Convert a schema to the OpenAI-style function tool definition."""
    return {
        "type": "function",
        "function": {
            "name": schema["name"],
            "description": schema.get("description", ""),
            "parameters": schema.get("input_schema", schema.get("parameters", {})),
        },
    }


def get_tool_definitions() -> list[dict]:
    """Tool definitions exposed to the planner."""
    return [to_function_definition(schema) for schema in RETRIEVAL_SCHEMAS]


def parse_arguments(arguments_json: str) -> dict[str, Any] | None:
    """Decode a tool-call argument string; None unless it is a JSON object."""
    try:
        parsed = json.loads(arguments_json)
    except (TypeError, ValueError):
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


# -----------------------------------------------------------------------------
# Tool Registry
# -----------------------------------------------------------------------------

class ToolRegistry:
    """
    Registry for tool handlers.

    Decouples tool execution from the orchestrator. Handlers are
    registered by name and the registry handles dispatch.
    """

    def __init__(self):
        self._handlers: dict[str, ToolExecutor] = {}

    def register(self, name: str, handler: ToolExecutor) -> None:
        """Register a tool handler."""
        self._handlers[name] = handler

    def register_all(self, handlers: dict[str, ToolExecutor]) -> None:
        """Register multiple handlers at once."""
        self._handlers.update(handlers)

    def has_tool(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._handlers

    @property
    def tool_names(self) -> list[str]:
        """List all registered tool names."""
        return list(self._handlers.keys())

    def get_schemas(self) -> list[dict]:
        """Get schemas for all registered tools."""
        return [s for s in get_all_schemas() if s["name"] in self._handlers]

    def get_tool_definitions(self) -> list[dict]:
        """Planner-facing definitions for all registered tools."""
        return [to_function_definition(s) for s in self.get_schemas()]

    def execute(
        self,
        name: str,
        arguments: dict,
        catalog: RetrievalToolCatalog,
        allowed_scopes: set[str],
    ) -> ToolExecutionResult:
        """Execute a tool by name with decoded arguments."""
        if name not in self._handlers:
            return ToolExecutionResult.failure(
                name,
                InvalidArgument(f'Unknown tool "{name}".', detail="unknown tool"),
            )
        return self._handlers[name](catalog, arguments, allowed_scopes)

    def execute_call(
        self,
        call: PlannerToolCall,
        catalog: RetrievalToolCatalog,
        allowed_scopes: set[str],
    ) -> ToolExecutionResult:
        """Execute a planner tool call, decoding its JSON arguments."""
        arguments = parse_arguments(call.arguments_json)
        if arguments is None:
            return ToolExecutionResult.failure(
                call.name,
                InvalidArgument(
                    f'Tool "{call.name}" received invalid JSON arguments.',
                    detail="invalid args",
                ),
            )
        return self.execute(call.name, arguments, catalog, allowed_scopes)


def create_default_registry() -> ToolRegistry:
    """Create a registry with the three retrieval tools."""
    registry = ToolRegistry()
    registry.register_all({
        "search_entries": search_entries,
        "expand_neighbors": expand_neighbors,
        "get_entry": get_entry,
    })
    return registry
