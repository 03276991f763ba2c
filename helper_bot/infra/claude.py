"""
Anthropic Messages client for intent classification.

Sends a single-turn request (system prompt plus one user message) and
returns the joined text of the reply. Transient API failures are retried
with backoff, other failures move to the fallback model once, and a
rejected key is reported as ``auth_failed`` so the caller can refresh it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from anthropic import (
    APIConnectionError,
    APITimeoutError,
    AsyncAnthropic,
    AuthenticationError,
    InternalServerError,
    RateLimitError,
)

from helper_bot.config import Settings, get_settings
from helper_bot.infra.retry import retry_async

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (RateLimitError, APIConnectionError, APITimeoutError, InternalServerError)


class ClaudeClientError(Exception):
    """Raised when a classification request cannot be completed."""

    def __init__(self, message: str, auth_failed: bool = False):
        super().__init__(message)
        self.auth_failed = auth_failed


def is_auth_error(error: BaseException) -> bool:
    """Check whether an error was caused by rejected credentials."""
    if isinstance(error, ClaudeClientError):
        return error.auth_failed
    return isinstance(error, AuthenticationError)


def is_transient_error(error: BaseException) -> bool:
    """Rate limits, timeouts, dropped connections and 5xx responses."""
    return isinstance(error, TRANSIENT_ERRORS)


@dataclass
class ClaudeResponse:
    """Text reply of one Messages API call."""
    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""
    latency_ms: float = 0.0


def _read_api_key() -> str:
    # Fresh Settings() so a rotated key in the environment is picked up
    return Settings().anthropic_api_key


class ClaudeClient:
    """
    Messages API client shared by the bot context.

    The SDK client is rebuilt by ``refresh_credentials``; callers never
    hold a reference to it.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        settings: Optional[Settings] = None,
        credential_provider: Optional[Callable[[], str]] = None,
    ):
        """
        Args:
            api_key: Anthropic API key (defaults to settings)
            settings: Source of model names and retry limits
            credential_provider: Callable returning a fresh API key on refresh
        """
        settings = settings or get_settings()
        self.api_key = api_key or settings.anthropic_api_key
        if not self.api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        self.primary_model = settings.classifier_model
        self.fallback_model = settings.classifier_fallback_model
        self.max_transient_retries = settings.classifier_max_retries
        self._credential_provider = credential_provider or _read_api_key
        self._client = AsyncAnthropic(api_key=self.api_key)

        logger.info(
            f"Classifier client ready: primary={self.primary_model} fallback={self.fallback_model}"
        )

    async def refresh_credentials(self) -> None:
        """Rebuild the SDK client with a re-read key."""
        stale = self._client
        self.api_key = self._credential_provider() or self.api_key
        self._client = AsyncAnthropic(api_key=self.api_key)
        try:
            await stale.close()
        except Exception as e:
            logger.debug(f"Stale Anthropic client did not close cleanly: {e}")
        logger.info("Classifier credentials refreshed")

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.0,
        top_p: Optional[float] = None,
        use_fallback_on_error: bool = True,
    ) -> ClaudeResponse:
        """
        Run one single-turn request.

        Args:
            prompt: User message
            system_prompt: System instructions (optional)
            model: Model override (defaults to the primary model)
            max_tokens: Reply length cap
            temperature: Sampling temperature
            top_p: Nucleus sampling, omitted from the request when None
            use_fallback_on_error: Retry once on the fallback model

        Returns:
            ClaudeResponse with the reply text

        Raises:
            ClaudeClientError: ``auth_failed`` is set when the key was rejected
        """
        request: dict[str, Any] = {
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_prompt:
            request["system"] = system_prompt
        if top_p is not None:
            request["top_p"] = top_p

        models = [model or self.primary_model]
        if use_fallback_on_error and self.fallback_model not in models:
            models.append(self.fallback_model)

        last_error: Optional[Exception] = None
        for name in models:
            try:
                return await self._create(name, request)
            except AuthenticationError as e:
                # Same key on every model
                raise ClaudeClientError(f"Anthropic rejected the API key: {e}", auth_failed=True) from e
            except Exception as e:
                last_error = e
                logger.warning(f"Model {name} failed: {e}")

        raise ClaudeClientError(f"Classification request failed: {last_error}") from last_error

    async def _create(self, model: str, request: dict[str, Any]) -> ClaudeResponse:
        started = time.time()
        response = await retry_async(
            lambda: self._client.messages.create(model=model, **request),
            should_retry=is_transient_error,
            max_retries=self.max_transient_retries,
            backoff_base=1.0,
        )
        usage = getattr(response, "usage", None)
        return ClaudeResponse(
            content=self._to_text(response),
            model=model,
            input_tokens=getattr(usage, "input_tokens", 0),
            output_tokens=getattr(usage, "output_tokens", 0),
            stop_reason=response.stop_reason or "",
            latency_ms=(time.time() - started) * 1000,
        )

    @staticmethod
    def _to_text(response: Any) -> str:
        """Join the text blocks of a Messages API response."""
        return "".join(
            block.text
            for block in getattr(response, "content", None) or []
            if getattr(block, "type", None) == "text"
        )

    async def close(self) -> None:
        await self._client.close()
