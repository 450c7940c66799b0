"""Model router with a fallback chain and tenacity retry.

Every generation call goes through ``ModelRouter.complete``, which tries
each model in the configured chain (retrying each one with exponential
backoff) and returns the first litellm response. Uses litellm for
provider-agnostic access to the tool-calling chat protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel, Field
from tenacity import (
    RetryError,
    retry,
    stop_after_attempt,
    wait_exponential,
)

from trend_digest.exceptions import ModelRoutingError

if TYPE_CHECKING:
    from trend_digest.config import LLMSettings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_RETRIES = 3
_BACKOFF_MIN_SECONDS = 1
_BACKOFF_MAX_SECONDS = 10


# ---------------------------------------------------------------------------
# Configuration models
# ---------------------------------------------------------------------------


class ModelSpec(BaseModel):
    """Specification for a single model in a fallback chain."""

    model: str = Field(description="litellm model identifier, e.g. anthropic/claude-...")
    max_tokens: int = Field(default=2048, gt=0)
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    timeout: int = Field(default=120, gt=0)


def chain_from_settings(settings: LLMSettings) -> list[ModelSpec]:
    """Build the fallback chain: primary model first, then the fallbacks."""
    models = [settings.model, *settings.fallback_models]
    return [
        ModelSpec(
            model=model,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
            timeout=settings.timeout,
        )
        for model in dict.fromkeys(models)
    ]


# ---------------------------------------------------------------------------
# Model Router
# ---------------------------------------------------------------------------


class ModelRouter:
    """Sends chat completions along a fallback chain.

    Attributes:
        chain: Models to try, in order.
        retries: Attempts per model before falling to the next one.
    """

    def __init__(self, chain: list[ModelSpec], retries: int = _DEFAULT_RETRIES) -> None:
        if not chain:
            raise ModelRoutingError("No models configured")
        self.chain = chain
        self.retries = retries

    @classmethod
    def from_settings(cls, settings: LLMSettings) -> ModelRouter:
        return cls(chain_from_settings(settings), retries=settings.retries)

    async def _call_with_retry(
        self,
        model_id: str,
        messages: list[dict[str, Any]],
        **kwargs: Any,
    ) -> Any:
        """Call litellm.acompletion with tenacity retry.

        Args:
            model_id: The litellm model identifier.
            messages: Chat messages to send.
            **kwargs: Additional keyword arguments for litellm.

        Returns:
            The litellm ModelResponse.

        Raises:
            RetryError: If all retry attempts fail.
        """
        import litellm

        @retry(
            stop=stop_after_attempt(self.retries),
            wait=wait_exponential(min=_BACKOFF_MIN_SECONDS, max=_BACKOFF_MAX_SECONDS),
            reraise=False,
        )
        async def _do_call() -> Any:
            return await litellm.acompletion(
                model=model_id,
                messages=messages,
                **kwargs,
            )

        return await _do_call()

    async def complete(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        **kwargs: Any,
    ) -> Any:
        """Invoke the chain until one model answers.

        Args:
            messages: Chat messages (litellm/OpenAI format).
            tools: Optional tool definitions offered to the model.
            **kwargs: Additional keyword arguments for litellm.

        Returns:
            The litellm ModelResponse.

        Raises:
            ModelRoutingError: If every model in the chain fails.
        """
        failed: list[str] = []

        for spec in self.chain:
            call_kwargs: dict[str, Any] = {
                "max_tokens": spec.max_tokens,
                "temperature": spec.temperature,
                "timeout": spec.timeout,
                **kwargs,
            }
            if tools:
                call_kwargs["tools"] = tools
                call_kwargs.setdefault("tool_choice", "auto")

            try:
                result = await self._call_with_retry(spec.model, messages, **call_kwargs)
            except RetryError as exc:
                last_err = exc.last_attempt.exception() if exc.last_attempt else exc
                logger.warning(
                    "model_retries_exhausted",
                    model=spec.model,
                    error=str(last_err),
                )
                failed.append(spec.model)
                continue

            logger.info("model_invoke_success", model=spec.model, tools=bool(tools))
            return result

        raise ModelRoutingError(f"All models in chain failed: [{', '.join(failed)}]")
