"""
Limits and results for the retrieval loop.

RetrievalToolRunResult is the contract handed back to callers, so it is a
Pydantic model for validation and JSON serialization.
"""

import math
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class StopReason(str, Enum):
    """Why the retrieval loop ended."""
    COMPLETED = "completed"                    # Planner asked for no more tools
    CALL_LIMIT = "call_limit"
    RESULT_TOKEN_LIMIT = "result_token_limit"
    TIME_LIMIT = "time_limit"
    ABORTED = "aborted"
    PLANNER_ERROR = "planner_error"


DEFAULT_CONTEXT_TOKEN_BUDGET = 1200


def clamp_limit(value: object, fallback: int, minimum: int, maximum: int) -> int:
    """
    Clamp a limit to [minimum, maximum].

    Limits often come from hand-edited config, so numeric strings are
    accepted. Missing, non-numeric or non-finite values give ``fallback``.
    """
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


@dataclass
class RetrievalToolLimits:
    """Budgets for one retrieval run."""
    max_calls: int = 4
    max_result_tokens: int = 1200
    max_planning_time_ms: int = 8000
    max_injected_entries: int = 6

    def clamped(self) -> "RetrievalToolLimits":
        """Limits forced into their supported ranges."""
        return RetrievalToolLimits(
            max_calls=clamp_limit(self.max_calls, 4, 1, 16),
            max_result_tokens=clamp_limit(self.max_result_tokens, 1200, 128, 12000),
            max_planning_time_ms=clamp_limit(self.max_planning_time_ms, 8000, 500, 120000),
            max_injected_entries=clamp_limit(self.max_injected_entries, 6, 1, 32),
        )


class RetrievalToolRunResult(BaseModel):
    """
    Outcome of a retrieval run.

    Always carries a best-effort context document, even when the loop
    stopped early.
    """
    markdown: str = ""
    used_tokens: int = 0
    selected_items: list[str] = Field(default_factory=list)
    trace: list[str] = Field(default_factory=list)
    executed_calls: int = 0
    stop_reason: StopReason = StopReason.COMPLETED
    last_planner_error: str = ""
