"""
Planner contract for model-driven retrieval.

A planner takes the running transcript plus the tool definitions and
answers with text and/or tool calls. Any async callable matching
``Planner`` can drive the retrieval loop, so tests can swap in a
deterministic fake.
"""

import threading
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Literal


class PlannerError(RuntimeError):
    """Raised by planner backends when a planning request fails."""


class CancellationToken:
    """
    Cooperative cancellation flag.

    Safe to cancel from another thread; the retrieval loop polls it at
    its checkpoints and planners may poll it while waiting.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class PlannerToolCall:
    """A tool call requested by the planner. Arguments stay JSON-encoded."""
    id: str
    name: str
    arguments_json: str


@dataclass
class PlannerMessage:
    """A message in the planning transcript."""
    role: Literal["system", "user", "assistant", "tool"]
    content: str
    tool_call_id: str | None = None  # For tool results
    tool_name: str | None = None
    tool_calls: list[PlannerToolCall] = field(default_factory=list)


@dataclass
class PlannerRequest:
    """One planning round."""
    messages: list[PlannerMessage]
    tool_definitions: list[dict]
    timeout_ms: int
    cancellation: CancellationToken | None = None


@dataclass
class PlannerResponse:
    """Planner answer: optional text plus the tool calls it wants run."""
    assistant_text: str = ""
    tool_calls: list[PlannerToolCall] = field(default_factory=list)
    finish_reason: str = ""

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


Planner = Callable[[PlannerRequest], Awaitable[PlannerResponse]]
