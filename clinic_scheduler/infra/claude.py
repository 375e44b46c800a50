"""
Claude API Client

Manages the Anthropic API connection used by the conversation loop, with
async support, retry logic and model fallback.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from anthropic import AsyncAnthropic, APIError, RateLimitError, APIConnectionError

logger = logging.getLogger(__name__)


class ClaudeClientError(Exception):
    """Raised when the Claude API call fails after retries and fallback."""
    pass


class ClaudeClient:
    """
    Async Claude API client wrapper.

    Features:
    - Async API calls with tool definitions
    - Automatic retries with exponential backoff
    - Model fallback
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        fallback_model: Optional[str] = None,
        max_retries: int = 3,
    ):
        """Initialize Claude client.

        Args:
            api_key: Anthropic API key
            model: Default model for conversation turns
            fallback_model: Model tried once when the default one fails
            max_retries: Attempts per model on rate limit / connection errors
        """
        if not api_key:
            raise ValueError("Anthropic API key is required")

        self._client = AsyncAnthropic(api_key=api_key)
        self._default_model = model
        self._fallback_model = fallback_model
        self._max_retries = max_retries

        logger.info(f"ClaudeClient initialized with model={self._default_model}")

    async def create_message(
        self,
        messages: list[dict],
        system: Optional[str] = None,
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        use_fallback_on_error: bool = True,
    ) -> Any:
        """
        Send a transcript to Claude and return the raw Message.

        The caller inspects ``stop_reason`` and the content blocks
        (``text`` / ``tool_use``).

        Raises:
            ClaudeClientError: If the API call fails after retries
        """
        model = model or self._default_model
        start_time = time.time()

        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = tools

        try:
            response = await self._call_with_retry(kwargs)
        except (APIError, ClaudeClientError) as e:
            if use_fallback_on_error and self._fallback_model and model != self._fallback_model:
                logger.warning(f"Primary model failed, trying fallback: {e}")
                return await self.create_message(
                    messages=messages,
                    system=system,
                    tools=tools,
                    model=self._fallback_model,
                    max_tokens=max_tokens,
                    use_fallback_on_error=False,
                )
            raise ClaudeClientError(f"Claude API call failed: {e}") from e

        latency_ms = (time.time() - start_time) * 1000
        logger.debug(
            f"Claude call model={model} stop_reason={response.stop_reason} "
            f"latency={latency_ms:.0f}ms"
        )
        return response

    async def _call_with_retry(self, kwargs: dict[str, Any]) -> Any:
        """
        Call messages.create, backing off 1s, 2s, 4s... on rate limits and
        connection errors. Other API errors are raised immediately.
        """
        last_error: Optional[Exception] = None

        for attempt in range(self._max_retries):
            try:
                return await self._client.messages.create(**kwargs)
            except (RateLimitError, APIConnectionError) as e:
                last_error = e
                delay = 2 ** attempt
                logger.warning(
                    f"{type(e).__name__} from model {kwargs['model']}, "
                    f"retry {attempt + 1}/{self._max_retries} in {delay}s"
                )
                await asyncio.sleep(delay)
            except APIError as e:
                logger.error(f"API error from model {kwargs['model']}: {e}")
                raise

        raise ClaudeClientError(f"Max retries exceeded: {last_error}")

    async def close(self) -> None:
        """Close the client."""
        await self._client.close()
