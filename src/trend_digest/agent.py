"""Bounded tool-use loop around the model router.

The loop alternates between asking the model for a response and running
the tools it requests, until the model answers without tool calls or the
iteration ceiling is reached. Each call to ``generate`` owns its own
``ConversationState``; nothing is shared between calls.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import structlog

from trend_digest.exceptions import MalformedOutputError, ToolExecutionError

if TYPE_CHECKING:
    from trend_digest.models import ModelRouter
    from trend_digest.search import SearchGateway

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 2

WEB_SEARCH_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "web_search",
        "description": (
            "Search the web for current information about AI tools, trends, "
            "and how-to guides"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query",
                },
            },
            "required": ["query"],
        },
    },
}


class LoopState(StrEnum):
    AWAITING_MODEL = "awaiting-model"
    EXECUTING_TOOLS = "executing-tools"
    DONE = "done"


@dataclass(slots=True)
class PromptPayload:
    """What to ask the model: a user prompt and an optional system prompt."""

    user: str
    system: str | None = None

    def to_messages(self) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        if self.system:
            messages.append({"role": "system", "content": self.system})
        messages.append({"role": "user", "content": self.user})
        return messages


@dataclass(slots=True)
class ConversationState:
    """Accumulated turns and the tool round-trip counter for one call."""

    messages: list[dict[str, Any]]
    iterations: int = 0
    state: LoopState = LoopState.AWAITING_MODEL
    tool_calls: int = 0


@dataclass(slots=True)
class GenerationResult:
    text: str
    iterations: int
    hit_ceiling: bool = False
    tool_calls: int = 0
    search_queries: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class _ToolCall:
    id: str
    name: str
    arguments: str


# ---------------------------------------------------------------------------
# Response helpers (litellm ModelResponse, OpenAI shape)
# ---------------------------------------------------------------------------


def _first_choice(response: Any) -> Any:
    choices = getattr(response, "choices", None)
    if not choices:
        raise MalformedOutputError("Model response has no choices")
    return choices[0]


def _response_text(message: Any) -> str | None:
    content = getattr(message, "content", None)
    if isinstance(content, str):
        return content if content.strip() else None
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text" and part.get("text"):
                return str(part["text"])
    return None


def _tool_calls(message: Any) -> list[_ToolCall]:
    calls: list[_ToolCall] = []
    for raw in getattr(message, "tool_calls", None) or []:
        function = getattr(raw, "function", None)
        calls.append(
            _ToolCall(
                id=str(getattr(raw, "id", "") or ""),
                name=str(getattr(function, "name", "") or ""),
                arguments=str(getattr(function, "arguments", "") or ""),
            )
        )
    return calls


def _assistant_turn(text: str | None, calls: list[_ToolCall]) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": text,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments},
            }
            for call in calls
        ],
    }


# ---------------------------------------------------------------------------
# Loop
# ---------------------------------------------------------------------------


class AgenticLoop:
    """Generate text with optional web-search tool use, bounded by a ceiling.

    Attributes:
        router: Model router used for every model call.
        search: Gateway backing the ``web_search`` tool.
        max_iterations: Maximum tool round trips per ``generate`` call.
    """

    def __init__(
        self,
        router: ModelRouter,
        search: SearchGateway,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> None:
        self.router = router
        self.search = search
        self.max_iterations = max_iterations

    async def generate(
        self,
        prompt: PromptPayload,
        tools_enabled: bool = True,
    ) -> GenerationResult:
        """Run the loop to completion and return the final text.

        Args:
            prompt: System and user prompt.
            tools_enabled: Whether to offer the ``web_search`` tool.

        Returns:
            The text of the latest model response with loop statistics.

        Raises:
            MalformedOutputError: If the final response carries no text.
            ModelRoutingError: If every configured model fails.
        """
        conversation = ConversationState(messages=prompt.to_messages())
        tools = [WEB_SEARCH_TOOL] if tools_enabled and self.max_iterations > 0 else None
        queries: list[str] = []
        hit_ceiling = False

        while True:
            response = await self.router.complete(conversation.messages, tools=tools)
            choice = _first_choice(response)
            message = getattr(choice, "message", None)
            text = _response_text(message)
            # finish_reason "tool_calls" with no calls attached has nothing to run
            calls = _tool_calls(message) if tools else []
            if not calls:
                break
            if conversation.iterations >= self.max_iterations:
                hit_ceiling = True
                logger.info(
                    "agent_loop_ceiling_reached",
                    iterations=conversation.iterations,
                    pending_tool_calls=len(calls),
                )
                break

            conversation.state = LoopState.EXECUTING_TOOLS
            conversation.messages.append(_assistant_turn(text, calls))
            results = await asyncio.gather(*(self._run_tool(call, queries) for call in calls))
            for call, result in zip(calls, results, strict=True):
                conversation.messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": result}
                )
            conversation.tool_calls += len(calls)
            conversation.iterations += 1
            conversation.state = LoopState.AWAITING_MODEL
            logger.debug(
                "agent_tool_round_trip",
                iteration=conversation.iterations,
                tool_calls=len(calls),
            )

        conversation.state = LoopState.DONE
        if text is None:
            raise MalformedOutputError("Model returned no text content", raw_text="")

        logger.info(
            "agent_loop_done",
            iterations=conversation.iterations,
            tool_calls=conversation.tool_calls,
            hit_ceiling=hit_ceiling,
        )
        return GenerationResult(
            text=text,
            iterations=conversation.iterations,
            hit_ceiling=hit_ceiling,
            tool_calls=conversation.tool_calls,
            search_queries=queries,
        )

    async def _run_tool(self, call: _ToolCall, queries: list[str]) -> str:
        """Execute one tool call; failures become an error tool result."""
        try:
            query = self._parse_search_call(call)
        except ToolExecutionError as exc:
            logger.warning("tool_call_rejected", tool=call.name, error=str(exc))
            return f"Error: {exc}"

        queries.append(query)
        return await self.search.search(query)

    @staticmethod
    def _parse_search_call(call: _ToolCall) -> str:
        if call.name != "web_search":
            raise ToolExecutionError(f"unknown tool {call.name!r}")
        try:
            arguments = json.loads(call.arguments or "{}")
        except json.JSONDecodeError as exc:
            raise ToolExecutionError(f"invalid arguments for web_search: {exc}") from exc
        query = arguments.get("query") if isinstance(arguments, dict) else None
        if not isinstance(query, str) or not query.strip():
            raise ToolExecutionError("web_search requires a non-empty 'query' string")
        return query.strip()
