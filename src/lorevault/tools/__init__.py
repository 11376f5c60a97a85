"""Retrieval tools: catalog, executors and registry."""

from .catalog import (
    CatalogEntry,
    CatalogInput,
    RetrievalToolCatalog,
    create_retrieval_tool_catalog,
    make_catalog_key,
)
from .executors import (
    EntryNotFound,
    InvalidArgument,
    ScopeNotActive,
    ToolError,
    ToolErrorCode,
    ToolExecutionResult,
    expand_neighbors,
    get_entry,
    search_entries,
)
from .registry import (
    ToolRegistry,
    create_default_registry,
    get_all_schemas,
    get_tool_definitions,
    is_tool_name,
)

__all__ = [
    # Catalog
    "CatalogEntry",
    "CatalogInput",
    "RetrievalToolCatalog",
    "create_retrieval_tool_catalog",
    "make_catalog_key",
    # Executors
    "EntryNotFound",
    "InvalidArgument",
    "ScopeNotActive",
    "ToolError",
    "ToolErrorCode",
    "ToolExecutionResult",
    "expand_neighbors",
    "get_entry",
    "search_entries",
    # Registry
    "ToolRegistry",
    "create_default_registry",
    "get_all_schemas",
    "get_tool_definitions",
    "is_tool_name",
]
