"""
OpenAI-compatible retrieval planner.

Sends the planning transcript to a ``chat/completions`` endpoint with the
retrieval tools attached and turns the reply into a PlannerResponse.
Works with OpenRouter, LM Studio and other OpenAI-compatible servers.
"""

import asyncio
import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any

from .base import (
    PlannerError,
    PlannerMessage,
    PlannerRequest,
    PlannerResponse,
    PlannerToolCall,
)

logger = logging.getLogger(__name__)


MIN_TIMEOUT_MS = 500


def resolve_completions_url(endpoint: str) -> str:
    """Append ``/chat/completions`` to an API root unless already present."""
    trimmed = endpoint.strip().rstrip("/")
    if trimmed.endswith("/chat/completions"):
        return trimmed
    return f"{trimmed}/chat/completions"


def normalize_content_value(content: Any) -> str:
    """Flatten message content that may be a string or a list of parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                parts.append(item["text"])
            elif isinstance(item, dict) and isinstance(item.get("content"), str):
                parts.append(item["content"])
        return "\n".join(p for p in parts if p).strip()
    return ""


def convert_messages(messages: list[PlannerMessage]) -> list[dict]:
    """Convert the planning transcript to OpenAI chat messages."""
    api_messages = []
    for msg in messages:
        if msg.role == "assistant" and msg.tool_calls:
            api_messages.append({
                "role": "assistant",
                "content": msg.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": call.arguments_json,
                        },
                    }
                    for call in msg.tool_calls
                ],
            })
        elif msg.role == "tool":
            api_messages.append({
                "role": "tool",
                "tool_call_id": msg.tool_call_id or "",
                "name": msg.tool_name or "",
                "content": msg.content,
            })
        else:
            api_messages.append({
                "role": msg.role,
                "content": msg.content,
            })
    return api_messages


def parse_planner_response(payload: Any) -> PlannerResponse:
    """
    Parse a chat completion payload.

    Tool calls without a function name are dropped. Missing call ids are
    numbered ``tool-call-<n>``; non-string arguments are JSON-encoded.
    """
    choices = payload.get("choices") if isinstance(payload, dict) else None
    choice = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(choice, dict):
        choice = {}
    message = choice.get("message") or {}
    if not isinstance(message, dict):
        message = {}

    finish_reason = choice.get("finish_reason")
    raw_calls = message.get("tool_calls")
    if not isinstance(raw_calls, list):
        raw_calls = []

    tool_calls = []
    for index, call in enumerate(raw_calls, 1):
        if not isinstance(call, dict):
            continue
        function = call.get("function") or {}
        name = function.get("name") if isinstance(function, dict) else None
        if not isinstance(name, str) or not name.strip():
            continue

        raw_args = function.get("arguments")
        if isinstance(raw_args, str):
            arguments_json = raw_args
        else:
            arguments_json = json.dumps(raw_args if raw_args is not None else {})

        call_id = call.get("id")
        if not isinstance(call_id, str) or not call_id.strip():
            call_id = f"tool-call-{index}"

        tool_calls.append(PlannerToolCall(
            id=call_id.strip(),
            name=name.strip(),
            arguments_json=arguments_json,
        ))

    return PlannerResponse(
        assistant_text=normalize_content_value(message.get("content")),
        tool_calls=tool_calls,
        finish_reason=str(finish_reason) if finish_reason is not None else "",
    )


class OpenAICompatiblePlanner:
    """
    Retrieval planner backed by an OpenAI-compatible chat API.

    The HTTP request is blocking, so it runs in a worker thread; the
    retrieval loop stays free to enforce its own time budget.
    """

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str | None = None,
        timeout_ms: int = 30000,
        temperature: float = 0.0,
        max_tokens: int = 240,
    ):
        """
        Initialize the planner.

        Args:
            endpoint: API root (``.../v1``) or full completions URL
            model: Model identifier
            api_key: Bearer token, if the server needs one
            timeout_ms: Upper bound for a single request
            temperature: Sampling temperature
            max_tokens: Maximum planner response tokens
        """
        self.url = resolve_completions_url(endpoint)
        self.model = model
        self._api_key = api_key
        self.timeout_ms = timeout_ms
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _make_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def build_payload(self, request: PlannerRequest) -> dict:
        return {
            "model": self.model,
            "messages": convert_messages(request.messages),
            "tools": request.tool_definitions,
            "tool_choice": "auto",
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }

    def _post(self, payload: dict, timeout_ms: int) -> dict:
        """Blocking POST; raises PlannerError on any failure."""
        req = urllib.request.Request(
            self.url,
            data=json.dumps(payload).encode("utf-8"),
            headers=self._make_headers(),
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=timeout_ms / 1000) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise PlannerError(
                f"Retrieval tool planner request failed ({e.code}): {body}"
            ) from e
        except (socket.timeout, TimeoutError) as e:
            raise PlannerError(
                f"Retrieval tool planner request timed out after {timeout_ms}ms."
            ) from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise PlannerError(
                    f"Retrieval tool planner request timed out after {timeout_ms}ms."
                ) from e
            raise PlannerError(f"Retrieval tool planner request failed: {e.reason}") from e
        except json.JSONDecodeError as e:
            raise PlannerError(f"Retrieval tool planner returned invalid JSON: {e}") from e

    async def __call__(self, request: PlannerRequest) -> PlannerResponse:
        if request.cancellation and request.cancellation.cancelled:
            raise PlannerError("Retrieval tool planner request was aborted.")

        timeout_ms = max(MIN_TIMEOUT_MS, min(self.timeout_ms, request.timeout_ms))
        payload = self.build_payload(request)
        logger.debug("Planner request to %s (%d messages)", self.url, len(payload["messages"]))

        response = await asyncio.to_thread(self._post, payload, timeout_ms)

        if request.cancellation and request.cancellation.cancelled:
            raise PlannerError("Retrieval tool planner request was aborted.")

        return parse_planner_response(response)
