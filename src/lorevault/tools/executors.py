"""
Retrieval tool executors.

Three read-only tools over a RetrievalToolCatalog:

- search_entries: ranked keyword search
- expand_neighbors: breadth-first walk over the wikilink graph
- get_entry: direct fetch by uid

Tool errors are recoverable. They never escape the executors; instead they
come back as a failed ToolExecutionResult so the planner can adjust its
next call.
"""

import functools
import math
import re
import sys
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..lore.scoping import normalize_scope
from .catalog import RetrievalToolCatalog, make_catalog_key, normalize_text


SNIPPET_MAX_CHARS = 260
SNIPPET_LEAD_CHARS = 80
MIN_SUBSTRING_TOKEN_LEN = 3
MAX_ENTRY_NEIGHBORS = 8

TOKEN_PATTERN = re.compile(r"[^\W_][\w-]*")


# -----------------------------------------------------------------------------
# Results and Errors
# -----------------------------------------------------------------------------

class ToolErrorCode(str, Enum):
    """Recoverable tool failure kinds."""
    INVALID_ARGUMENT = "invalid_argument"
    SCOPE_NOT_ACTIVE = "scope_not_active"
    ENTRY_NOT_FOUND = "entry_not_found"


class ToolError(Exception):
    """
    Base class for tool failures.

    ``detail`` is the short form used in trace lines.
    """
    code = ToolErrorCode.INVALID_ARGUMENT

    def __init__(self, message: str, detail: str):
        super().__init__(message)
        self.detail = detail


class InvalidArgument(ToolError):
    code = ToolErrorCode.INVALID_ARGUMENT


class ScopeNotActive(ToolError):
    code = ToolErrorCode.SCOPE_NOT_ACTIVE


class EntryNotFound(ToolError):
    code = ToolErrorCode.ENTRY_NOT_FOUND


@dataclass
class ToolExecutionResult:
    """Outcome of one tool call."""
    ok: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: ToolErrorCode | None = None
    selected_keys: list[str] = field(default_factory=list)
    trace: str = ""

    @classmethod
    def failure(cls, tool_name: str, error: ToolError) -> "ToolExecutionResult":
        return cls(
            ok=False,
            error=str(error),
            error_code=error.code,
            trace=f"{tool_name} error: {error.detail}",
        )

    def to_payload(self) -> dict[str, Any]:
        """Payload sent back to the planner as the tool turn."""
        if self.ok:
            return {"ok": True, **(self.data or {})}
        payload: dict[str, Any] = {"ok": False, "error": self.error or "unknown error"}
        if self.error_code is not None:
            payload["code"] = self.error_code.value
        return payload


ToolExecutor = Callable[[RetrievalToolCatalog, dict, set[str]], ToolExecutionResult]


def tool_boundary(tool_name: str) -> Callable[[ToolExecutor], ToolExecutor]:
    """Convert ToolErrors raised inside an executor into failed results."""
    def decorator(func: ToolExecutor) -> ToolExecutor:
        @functools.wraps(func)
        def wrapper(
            catalog: RetrievalToolCatalog,
            args: dict,
            allowed_scopes: set[str],
        ) -> ToolExecutionResult:
            try:
                return func(catalog, args, allowed_scopes)
            except ToolError as e:
                return ToolExecutionResult.failure(tool_name, e)
        return wrapper
    return decorator


# -----------------------------------------------------------------------------
# Argument Helpers
# -----------------------------------------------------------------------------

def read_optional_string(args: dict, key: str) -> str:
    """Trimmed string argument, or empty string when missing or not a string."""
    value = args.get(key)
    if not isinstance(value, str):
        return ""
    return value.strip()


def read_integer(args: dict, key: str, fallback: int, minimum: int, maximum: int) -> int:
    """
    Integer argument clamped to [minimum, maximum].

    Numeric strings are accepted; fractional values are floored. Missing,
    non-numeric or non-finite values give ``fallback``.
    """
    value = args.get(key)
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return fallback
    if not isinstance(value, (int, float)):
        return fallback
    if isinstance(value, float) and not math.isfinite(value):
        return fallback
    return max(minimum, min(maximum, math.floor(value)))


def read_uid(args: dict, tool_name: str) -> int:
    uid = read_integer(args, "uid", -1, -1, sys.maxsize)
    if uid < 0:
        raise InvalidArgument(
            f'{tool_name} requires an integer "uid".',
            detail="missing uid",
        )
    return uid


def tokenize(value: str) -> list[str]:
    """Lowercase word tokens, deduplicated in first-seen order."""
    return list(dict.fromkeys(TOKEN_PATTERN.findall(normalize_text(value))))


def create_snippet(content: str, query_tokens: list[str]) -> str:
    """
    Excerpt of content around the first query token found.

    Starts a little before the first token occurrence (tokens are tried in
    order) or at the beginning when none occurs.
    """
    cleaned = content.strip()
    if not cleaned:
        return ""

    normalized = normalize_text(cleaned)
    start = 0
    for token in query_tokens:
        index = normalized.find(token)
        if index >= 0:
            start = max(0, index - SNIPPET_LEAD_CHARS)
            break

    segment = cleaned[start:start + SNIPPET_MAX_CHARS].strip()
    if start + SNIPPET_MAX_CHARS < len(cleaned):
        return f"{segment}..."
    return segment


# -----------------------------------------------------------------------------
# Scope and Entry Resolution
# -----------------------------------------------------------------------------

def resolve_scope_filter(
    scope_arg: str,
    allowed_scopes: set[str],
    catalog: RetrievalToolCatalog,
) -> list[str]:
    """Scopes to search: all allowed scopes, or the one requested if active."""
    normalized = normalize_scope(scope_arg)
    if not normalized:
        return sorted(allowed_scopes)
    if normalized not in allowed_scopes or not catalog.has_scope(normalized):
        return []
    return [normalized]


def resolve_entry_key(
    catalog: RetrievalToolCatalog,
    uid: int,
    scope: str,
    allowed_scopes: set[str],
) -> str | None:
    """
    Resolve a uid (and optional scope) to a catalog key.

    Without a scope, the lexicographically first key among allowed scopes
    wins.
    """
    scope_value = normalize_scope(scope)
    if scope_value:
        if scope_value not in allowed_scopes:
            return None
        key = make_catalog_key(scope_value, uid)
        return key if key in catalog.entries_by_key else None

    allowed = [
        key for key in catalog.keys_by_uid.get(uid, ())
        if catalog.entries_by_key[key].scope in allowed_scopes
    ]
    return min(allowed) if allowed else None


def _require_entry_key(
    catalog: RetrievalToolCatalog,
    args: dict,
    allowed_scopes: set[str],
    tool_name: str,
) -> str:
    uid = read_uid(args, tool_name)
    key = resolve_entry_key(catalog, uid, read_optional_string(args, "scope"), allowed_scopes)
    if key is None:
        raise EntryNotFound(
            f"{tool_name} could not resolve the requested entry in active scopes.",
            detail=f"entry {uid} not found",
        )
    return key


# -----------------------------------------------------------------------------
# Tools
# -----------------------------------------------------------------------------

@tool_boundary("search_entries")
def search_entries(
    catalog: RetrievalToolCatalog,
    args: dict,
    allowed_scopes: set[str],
) -> ToolExecutionResult:
    """
    Rank entries in the active scopes against a query.

    Scoring (additive):
    - +120 title appears in the query
    - +80 per keyword equal to a query token, else +30 if the keyword
      appears in the query
    - per query token of 3+ chars: +30 if in the title, else +8 if in
      the content

    Ties break on entry order (desc), scope (asc), uid (asc).
    """
    query = read_optional_string(args, "query")
    if not query:
        raise InvalidArgument(
            'search_entries requires a non-empty "query" string.',
            detail="missing query",
        )

    scopes = resolve_scope_filter(read_optional_string(args, "scope"), allowed_scopes, catalog)
    if not scopes:
        raise ScopeNotActive(
            "search_entries scope did not match active scopes.",
            detail="scope not active",
        )

    limit = read_integer(args, "limit", 6, 1, 20)
    normalized_query = normalize_text(query)
    query_tokens = tokenize(query)
    token_set = set(query_tokens)

    matches: list[tuple[int, dict, str]] = []
    for scope in scopes:
        for key in catalog.keys_by_scope.get(scope, ()):
            item = catalog.entries_by_key[key]
            score = 0
            reasons: list[str] = []

            if item.normalized_title and item.normalized_title in normalized_query:
                score += 120
                reasons.append("title phrase")

            for keyword in item.normalized_keywords:
                if keyword in token_set:
                    score += 80
                    reasons.append(f"keyword:{keyword}")
                elif keyword in normalized_query:
                    score += 30
                    reasons.append(f"keyword phrase:{keyword}")

            for token in query_tokens:
                if len(token) < MIN_SUBSTRING_TOKEN_LEN:
                    continue
                if token in item.normalized_title:
                    score += 30
                    reasons.append(f"title token:{token}")
                elif token in item.normalized_content:
                    score += 8
                    reasons.append(f"content token:{token}")

            if score <= 0:
                continue

            preview = {
                "uid": item.uid,
                "scope": item.scope,
                "title": item.title,
                "keywords": list(item.entry.key),
                "score": score,
                "reason": ", ".join(sorted(set(reasons))),
                "snippet": create_snippet(item.entry.content, query_tokens),
            }
            matches.append((score, preview, key))

    matches.sort(key=lambda m: (
        -m[0],
        -catalog.entries_by_key[m[2]].order,
        m[1]["scope"],
        m[1]["uid"],
    ))

    top = matches[:limit]
    return ToolExecutionResult(
        ok=True,
        data={"matches": [preview for _, preview, _ in top]},
        selected_keys=[key for _, _, key in top],
        trace=f"search_entries returned {len(top)}",
    )


@tool_boundary("expand_neighbors")
def expand_neighbors(
    catalog: RetrievalToolCatalog,
    args: dict,
    allowed_scopes: set[str],
) -> ToolExecutionResult:
    """
    Walk wikilink neighbors breadth-first from one entry.

    Each node is reported once, at the shallowest depth it was reached.
    Results order by distance (asc), entry order (desc), scope, uid.
    """
    source_key = _require_entry_key(catalog, args, allowed_scopes, "expand_neighbors")
    source = catalog.entries_by_key[source_key]
    max_depth = read_integer(args, "depth", 1, 1, 3)
    limit = read_integer(args, "limit", 8, 1, 20)

    queue: deque[tuple[str, int, list[str]]] = deque([(source_key, 0, [source_key])])
    seen_depth: dict[str, int] = {source_key: 0}
    found: list[tuple[int, dict, str]] = []

    while queue:
        current_key, depth, path = queue.popleft()
        if depth >= max_depth:
            continue

        for neighbor_key in catalog.entries_by_key[current_key].neighbors:
            neighbor = catalog.entries_by_key.get(neighbor_key)
            if neighbor is None:
                continue

            next_depth = depth + 1
            existing = seen_depth.get(neighbor_key)
            if existing is not None and existing <= next_depth:
                continue

            seen_depth[neighbor_key] = next_depth
            next_path = [*path, neighbor_key]
            found.append((next_depth, {
                "uid": neighbor.uid,
                "scope": neighbor.scope,
                "title": neighbor.title,
                "keywords": list(neighbor.entry.key),
                "distance": next_depth,
                "path": [catalog.entries_by_key[k].uid for k in next_path],
                "snippet": create_snippet(neighbor.entry.content, []),
            }, neighbor_key))

            if next_depth < max_depth:
                queue.append((neighbor_key, next_depth, next_path))

    found.sort(key=lambda f: (
        f[0],
        -catalog.entries_by_key[f[2]].order,
        f[1]["scope"],
        f[1]["uid"],
    ))

    selected = found[:limit]
    return ToolExecutionResult(
        ok=True,
        data={
            "source": {
                "uid": source.uid,
                "scope": source.scope,
                "title": source.title,
            },
            "neighbors": [preview for _, preview, _ in selected],
        },
        selected_keys=[key for _, _, key in selected],
        trace=f"expand_neighbors returned {len(selected)}",
    )


@tool_boundary("get_entry")
def get_entry(
    catalog: RetrievalToolCatalog,
    args: dict,
    allowed_scopes: set[str],
) -> ToolExecutionResult:
    """Fetch one entry with a content excerpt and its immediate neighbors."""
    key = _require_entry_key(catalog, args, allowed_scopes, "get_entry")
    item = catalog.entries_by_key[key]
    content_chars = read_integer(args, "contentChars", 1200, 120, 5000)

    neighbors = [
        {
            "uid": neighbor.uid,
            "scope": neighbor.scope,
            "title": neighbor.title,
        }
        for neighbor in (
            catalog.entries_by_key[k] for k in item.neighbors[:MAX_ENTRY_NEIGHBORS]
        )
    ]

    return ToolExecutionResult(
        ok=True,
        data={
            "entry": {
                "uid": item.uid,
                "scope": item.scope,
                "title": item.title,
                "keywords": list(item.entry.key),
                "order": item.order,
                "snippet": item.entry.content.strip()[:content_chars],
                "neighbors": neighbors,
            },
        },
        selected_keys=[key],
        trace="get_entry returned 1",
    )
