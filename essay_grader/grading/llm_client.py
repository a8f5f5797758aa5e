"""
Chat-completion client.

Provides an async wrapper around the OpenAI SDK pointed at any
OpenAI-compatible endpoint. Includes retry logic and error normalisation:
every failure leaves this module as an ``LLMError``.
"""

import asyncio
import logging
from typing import Any

from openai import APIConnectionError, APIStatusError, AsyncOpenAI, RateLimitError

from essay_grader.config import Settings, get_settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when a chat-completion call fails."""

    def __init__(self, message: str, cause: Exception | None = None, retryable: bool = False):
        self.cause = cause
        self.retryable = retryable
        super().__init__(message)


class LLMClient:
    """
    Client for the chat-completion API.

    Implements retry logic with exponential backoff. Deadlines are the
    caller's concern (see ``ExaminerRunner``).
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the LLM client.

        Args:
            settings: Configuration settings. Uses global settings if not provided.
        """
        self._settings = settings or get_settings()
        self._client = AsyncOpenAI(
            api_key=self._settings.ai_api_key or "not-configured",
            base_url=self._settings.ai_base_url,
            timeout=self._settings.llm_timeout_seconds,
            max_retries=0,
        )

        # Retry configuration
        self._max_retries = self._settings.llm_max_retries
        self._base_delay = 1.0  # seconds
        self._max_delay = 8.0  # seconds

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Args:
            system_prompt: System message defining the examiner's role.
            user_prompt: User message with the material to assess.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in the reply.

        Returns:
            The reply text.

        Raises:
            LLMError: If the call fails after all retries or the reply is empty.
        """
        messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        return await self._call_with_retry(messages, temperature, max_tokens)

    async def _call_with_retry(
        self,
        messages: list[dict[str, str]],
        temperature: float,
        max_tokens: int,
    ) -> str:
        """
        Call the API with exponential backoff retry.

        Raises:
            LLMError: If all retries fail.
        """
        last_error: Exception | None = None

        for attempt in range(self._max_retries + 1):
            try:
                response = await self._client.chat.completions.create(
                    model=self._settings.ai_model,
                    messages=messages,  # type: ignore[arg-type]
                    temperature=temperature,
                    max_tokens=max_tokens,
                )
            except RateLimitError as e:
                last_error = e
                if attempt < self._max_retries:
                    await self._backoff(attempt, "rate limited")
                    continue
                raise LLMError(
                    f"Rate limit exceeded after {self._max_retries} retries",
                    cause=e,
                    retryable=True,
                ) from e

            except APIConnectionError as e:
                last_error = e
                if attempt < self._max_retries:
                    await self._backoff(attempt, "connection failed")
                    continue
                raise LLMError(
                    f"Connection failed after {self._max_retries} retries",
                    cause=e,
                    retryable=True,
                ) from e

            except APIStatusError as e:
                # Don't retry on client errors (4xx except 429)
                if 400 <= e.status_code < 500 and e.status_code != 429:
                    raise LLMError(
                        f"API error {e.status_code}: {e.message}",
                        cause=e,
                        retryable=False,
                    ) from e

                last_error = e
                if attempt < self._max_retries:
                    await self._backoff(attempt, f"status {e.status_code}")
                    continue
                raise LLMError(
                    f"API error after {self._max_retries} retries: {e.message}",
                    cause=e,
                    retryable=True,
                ) from e

            except Exception as e:
                raise LLMError(f"Unexpected error: {e}", cause=e, retryable=False) from e

            return self._reply_text(response)

        raise LLMError(f"Failed after {self._max_retries} retries", cause=last_error)

    @staticmethod
    def _reply_text(response: Any) -> str:
        """
        Extract the first choice's text from a completion.

        Raises:
            LLMError: If the completion has no usable text.
        """
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed response from LLM: {e}", cause=e) from e

        if not isinstance(content, str) or not content:
            raise LLMError("Empty response from LLM")
        return content

    async def _backoff(self, attempt: int, reason: str) -> None:
        delay = self._calculate_delay(attempt)
        logger.debug("Retrying chat completion in %.1fs (%s)", delay, reason)
        await asyncio.sleep(delay)

    def _calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay for exponential backoff.

        Args:
            attempt: Current attempt number (0-indexed).

        Returns:
            Delay in seconds.
        """
        delay = self._base_delay * (2**attempt)
        return min(delay, self._max_delay)

    async def health_check(self) -> bool:
        """
        Check if the API is reachable.

        Returns:
            True if API is healthy, False otherwise.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self._settings.ai_model,
                messages=[{"role": "user", "content": "ping"}],
                max_tokens=5,
            )
            return bool(response.choices)
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def aclose(self) -> None:
        await self._client.close()
