"""Planner-driven retrieval loop."""

from .orchestrator import (
    create_planner_system_prompt,
    create_planner_user_prompt,
    resolve_active_scopes,
    run_retrieval_tools,
)
from .results import (
    RetrievalToolLimits,
    RetrievalToolRunResult,
    StopReason,
    clamp_limit,
)

__all__ = [
    # Orchestrator
    "create_planner_system_prompt",
    "create_planner_user_prompt",
    "resolve_active_scopes",
    "run_retrieval_tools",
    # Results
    "RetrievalToolLimits",
    "RetrievalToolRunResult",
    "StopReason",
    "clamp_limit",
]
