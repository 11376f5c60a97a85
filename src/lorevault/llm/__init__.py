"""Planner contract and planner backends for model-driven retrieval."""

import asyncio
import os
from typing import Any, Mapping

from .base import (
    CancellationToken,
    Planner,
    PlannerError,
    PlannerMessage,
    PlannerRequest,
    PlannerResponse,
    PlannerToolCall,
)
from .openai_compat import (
    OpenAICompatiblePlanner,
    convert_messages,
    parse_planner_response,
    resolve_completions_url,
)

__all__ = [
    "CancellationToken",
    "Planner",
    "PlannerError",
    "PlannerMessage",
    "PlannerRequest",
    "PlannerResponse",
    "PlannerToolCall",
    "OpenAICompatiblePlanner",
    "convert_messages",
    "parse_planner_response",
    "resolve_completions_url",
    "MockPlanner",
    "create_completion_planner",
    "NO_TOOL_CALL_PROVIDERS",
]


# -----------------------------------------------------------------------------
# Mock Planner for Testing
# -----------------------------------------------------------------------------

class MockPlanner:
    """
    Mock planner for testing.

    Allows scripting planner turns without actual API calls.
    """

    def __init__(
        self,
        responses: list[PlannerResponse | Exception] | None = None,
        delay_s: float = 0.0,
    ):
        """
        Initialize mock planner.

        Args:
            responses: Responses to return in order. Exceptions in the list
                       are raised instead. The last item repeats once the
                       list is exhausted.
            delay_s: Simulated latency per call, in seconds.
        """
        self._responses = responses or [PlannerResponse(finish_reason="stop")]
        self._call_count = 0
        self.delay_s = delay_s
        self.requests: list[PlannerRequest] = []  # Record of all calls made

    @property
    def call_count(self) -> int:
        return self._call_count

    async def __call__(self, request: PlannerRequest) -> PlannerResponse:
        """Return the next scripted response."""
        # Snapshot the transcript; the caller keeps appending to it.
        self.requests.append(PlannerRequest(
            messages=list(request.messages),
            tool_definitions=request.tool_definitions,
            timeout_ms=request.timeout_ms,
            cancellation=request.cancellation,
        ))
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)

        index = min(self._call_count, len(self._responses) - 1)
        self._call_count += 1
        response = self._responses[index]
        if isinstance(response, Exception):
            raise response
        return response

    def set_responses(self, responses: list[PlannerResponse | Exception]) -> None:
        """Update the list of responses."""
        self._responses = responses
        self._call_count = 0

    def reset(self) -> None:
        """Reset call count and recorded requests."""
        self._call_count = 0
        self.requests.clear()


# -----------------------------------------------------------------------------
# Planner Factory
# -----------------------------------------------------------------------------

# Providers whose chat API has no tool calling
NO_TOOL_CALL_PROVIDERS = frozenset({"ollama"})


def create_completion_planner(settings: Mapping[str, Any]) -> OpenAICompatiblePlanner | None:
    """
    Create a planner from completion settings.

    Environment variables LOREVAULT_ENDPOINT, LOREVAULT_MODEL and
    LOREVAULT_API_KEY override the corresponding settings.

    Returns:
        The planner, or None when the provider cannot make tool calls or
        no endpoint/model is configured.
    """
    provider = str(settings.get("provider") or "openai").lower()
    if provider in NO_TOOL_CALL_PROVIDERS:
        return None

    endpoint = os.environ.get("LOREVAULT_ENDPOINT") or settings.get("endpoint")
    model = os.environ.get("LOREVAULT_MODEL") or settings.get("model")
    if not endpoint or not model:
        return None

    return OpenAICompatiblePlanner(
        endpoint=endpoint,
        model=model,
        api_key=os.environ.get("LOREVAULT_API_KEY") or settings.get("api_key"),
        timeout_ms=int(settings.get("timeout_ms") or 30000),
    )
