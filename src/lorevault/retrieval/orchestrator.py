"""
Model-driven retrieval loop.

Drives an injected planner through rounds of tool calls against the
catalog, then assembles whatever entries were gathered into a context
document.

Each round:
1. Check cancellation, the call cap and the time budget
2. Ask the planner for tool calls (the only suspension point)
3. Execute the calls in order, enforcing the call cap and the
   result-token budget before committing each result
4. Feed results back into the transcript and plan again

The loop never raises on planner failures or exhausted budgets; the
reason is reported in the result's stop_reason.
"""

import asyncio
import json
import logging
import math
import sys
import time
from typing import Callable

from ..context.assembler import MIN_TOKEN_BUDGET, assemble_context
from ..context.tokenizer import estimate_tokens
from ..llm.base import (
    CancellationToken,
    Planner,
    PlannerMessage,
    PlannerRequest,
    PlannerResponse,
)
from ..lore.scoping import get_scope_label, normalize_scope
from ..tools.catalog import RetrievalToolCatalog
from ..tools.registry import ToolRegistry, create_default_registry
from .results import (
    DEFAULT_CONTEXT_TOKEN_BUDGET,
    RetrievalToolLimits,
    RetrievalToolRunResult,
    StopReason,
    clamp_limit,
)

logger = logging.getLogger(__name__)


def create_planner_system_prompt() -> str:
    return "\n".join([
        "You are LoreVault retrieval planner.",
        "Use only available tools to fetch relevant world_info entries.",
        "Prefer precise calls with small limits.",
        "When enough data is available, stop issuing tool calls.",
        "Never invent entry IDs.",
    ])


def create_planner_user_prompt(query_text: str, scopes: list[str]) -> str:
    active = ", ".join(get_scope_label(s) for s in scopes) if scopes else "(none)"
    return "\n".join([
        "Query text:",
        query_text.strip() or "(empty)",
        "",
        f"Active scopes: {active}",
        "",
        "Find the most relevant entries for this query.",
    ])


def resolve_active_scopes(
    selected_scopes: list[str],
    catalog: RetrievalToolCatalog,
) -> set[str]:
    """
    Scopes the planner may touch.

    Requested scopes unknown to the catalog are dropped. No request means
    every catalog scope.
    """
    requested = [s for s in (normalize_scope(scope) for scope in selected_scopes) if s]
    if not requested:
        return set(catalog.keys_by_scope)
    return {scope for scope in requested if catalog.has_scope(scope)}


def serialize_payload(payload: dict) -> str:
    """Compact JSON for tool turns; its length drives the token estimate."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


async def run_retrieval_tools(
    query_text: str,
    selected_scopes: list[str],
    context_token_budget: int,
    catalog: RetrievalToolCatalog,
    planner: Planner,
    limits: RetrievalToolLimits | None = None,
    cancellation: CancellationToken | None = None,
    registry: ToolRegistry | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> RetrievalToolRunResult:
    """
    Run the planner-driven retrieval loop.

    Args:
        query_text: Text the context is gathered for
        selected_scopes: Scope allow-list; empty means all catalog scopes
        context_token_budget: Token budget for the assembled context
        catalog: Catalog built for this request
        planner: Async planner callable
        limits: Call, result-token, time and entry budgets (clamped)
        cancellation: Optional cooperative cancellation token
        registry: Tool registry; defaults to the three retrieval tools
        clock: Monotonic clock in seconds

    Returns:
        RetrievalToolRunResult with context, trace and stop reason
    """
    limits = (limits or RetrievalToolLimits()).clamped()
    token_budget = clamp_limit(
        context_token_budget, DEFAULT_CONTEXT_TOKEN_BUDGET, MIN_TOKEN_BUDGET, sys.maxsize,
    )

    scopes = resolve_active_scopes(selected_scopes, catalog)
    if not scopes:
        logger.debug("Retrieval skipped: no active scopes")
        return RetrievalToolRunResult(trace=["tool_hooks: no active scopes"])

    registry = registry or create_default_registry()
    tool_definitions = registry.get_tool_definitions()
    messages = [
        PlannerMessage(role="system", content=create_planner_system_prompt()),
        PlannerMessage(role="user", content=create_planner_user_prompt(query_text, sorted(scopes))),
    ]

    trace: list[str] = []
    selected_keys: list[str] = []
    seen_keys: set[str] = set()
    started = clock()
    executed_calls = 0
    used_result_tokens = 0
    stop_reason = StopReason.COMPLETED
    last_planner_error = ""

    def elapsed_ms() -> float:
        return (clock() - started) * 1000

    def is_cancelled() -> bool:
        return cancellation is not None and cancellation.cancelled

    while True:
        if is_cancelled():
            stop_reason = StopReason.ABORTED
            break

        if executed_calls >= limits.max_calls:
            stop_reason = StopReason.CALL_LIMIT
            break

        time_left_ms = limits.max_planning_time_ms - elapsed_ms()
        if time_left_ms <= 0:
            stop_reason = StopReason.TIME_LIMIT
            break

        request = PlannerRequest(
            messages=messages,
            tool_definitions=tool_definitions,
            timeout_ms=math.ceil(time_left_ms),
            cancellation=cancellation,
        )
        # A TimeoutError raised by the planner itself is a planner error;
        # only an unfinished task at the deadline is a time limit.
        planner_task = asyncio.ensure_future(planner(request))
        done, _ = await asyncio.wait({planner_task}, timeout=time_left_ms / 1000)
        if not done:
            planner_task.cancel()
            stop_reason = StopReason.TIME_LIMIT
            trace.append("tool_hooks: planner timed out")
            break

        try:
            response: PlannerResponse = planner_task.result()
        except Exception as e:
            last_planner_error = str(e) or type(e).__name__
            stop_reason = StopReason.ABORTED if is_cancelled() else StopReason.PLANNER_ERROR
            trace.append(f"tool_hooks: planner error ({last_planner_error})")
            logger.warning("Retrieval planner failed: %s", last_planner_error)
            break

        if is_cancelled():
            stop_reason = StopReason.ABORTED
            break

        if elapsed_ms() > limits.max_planning_time_ms:
            stop_reason = StopReason.TIME_LIMIT
            break

        tool_calls = [call for call in response.tool_calls if registry.has_tool(call.name)]
        if not tool_calls:
            trace.append(f"tool_hooks: planner stop ({response.finish_reason or 'no_tool_calls'})")
            break

        messages.append(PlannerMessage(
            role="assistant",
            content=response.assistant_text or "",
            tool_calls=tool_calls,
        ))
        logger.debug("Planner requested %d tool call(s)", len(tool_calls))

        cap_reached = False
        for call in tool_calls:
            if executed_calls >= limits.max_calls:
                stop_reason = StopReason.CALL_LIMIT
                cap_reached = True
                break

            execution = registry.execute_call(call, catalog, scopes)
            payload = serialize_payload(execution.to_payload())
            result_tokens = estimate_tokens(payload)

            if used_result_tokens + result_tokens > limits.max_result_tokens:
                stop_reason = StopReason.RESULT_TOKEN_LIMIT
                cap_reached = True
                break

            used_result_tokens += result_tokens
            executed_calls += 1
            trace.append(f"{call.name}: {execution.trace} (~{result_tokens} tokens)")

            for key in execution.selected_keys:
                if key not in seen_keys:
                    seen_keys.add(key)
                    selected_keys.append(key)

            messages.append(PlannerMessage(
                role="tool",
                content=payload,
                tool_call_id=call.id,
                tool_name=call.name,
            ))

        if cap_reached:
            break

    context = assemble_context(
        catalog,
        selected_keys,
        limits.max_injected_entries,
        token_budget,
    )

    if not trace:
        trace.append("tool_hooks: no tool calls executed")
    trace.insert(
        0,
        f"tool_hooks: {executed_calls} call(s), {len(context.selected_items)} selected entries, "
        f"stop={stop_reason.value}",
    )
    logger.info(
        "Retrieval finished: %d call(s), %d entries, stop=%s",
        executed_calls, len(context.selected_items), stop_reason.value,
    )

    return RetrievalToolRunResult(
        markdown=context.markdown,
        used_tokens=context.used_tokens,
        selected_items=context.selected_items,
        trace=trace,
        executed_calls=executed_calls,
        stop_reason=stop_reason,
        last_planner_error=last_planner_error,
    )
