"""Generative backend client wrapping the OpenAI SDK."""
import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError, RateLimitError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import settings
from ..core.exceptions import (
    BackendProviderError, BackendQuotaExceededError, BackendTimeoutError,
    BackendUnavailableError, ConfigurationError
)
from ..utils.logging import CorrelatedLogger

MODES = ("text", "json", "video")


@dataclass
class BackendReference:
    """Optional material sent along with a prompt."""
    video_url: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)


class GenerativeClient:
    """
    Sends prompts to the generative backend and returns raw text.

    Each attempt is bounded by ``backend_timeout_seconds``. Timeouts and quota
    errors are retried once with exponential backoff; every other failure is
    raised to the caller as a ``BackendError``.
    """

    def __init__(self, client: Optional[OpenAI] = None):
        self.logger = CorrelatedLogger(__name__)
        self.client = client or self._initialize_client()
        self.call_count = 0

    def _initialize_client(self) -> Optional[OpenAI]:
        """Initialize OpenAI client if API key is configured."""
        if not settings.openai_api_key:
            return None

        try:
            return OpenAI(api_key=settings.openai_api_key, max_retries=0)
        except OpenAIError as e:
            raise ConfigurationError("OpenAI client", str(e))

    @property
    def is_available(self) -> bool:
        return self.client is not None

    async def generate(
        self,
        prompt: str,
        mode: str = "text",
        reference: Optional[BackendReference] = None,
        operation: str = "generate"
    ) -> str:
        """Run one prompt, retrying once on timeout or quota errors."""
        if mode not in MODES:
            raise ValueError(f"Unknown generation mode: {mode}")
        if not self.client:
            raise BackendUnavailableError("OPENAI_API_KEY is not configured")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.backend_max_attempts),
            wait=wait_exponential(multiplier=settings.backend_retry_backoff_seconds, max=10),
            retry=retry_if_exception_type((BackendTimeoutError, BackendQuotaExceededError)),
            before_sleep=self._log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                return await self._call_once(prompt, mode, reference, operation)

    async def _call_once(
        self,
        prompt: str,
        mode: str,
        reference: Optional[BackendReference],
        operation: str
    ) -> str:
        self.call_count += 1
        kwargs = {
            "model": settings.vision_model if mode == "video" else settings.generation_model,
            "messages": self._build_messages(prompt, mode, reference),
            "max_tokens": settings.generation_max_tokens,
            "temperature": settings.generation_temperature,
        }
        if mode == "json":
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(self.client.chat.completions.create, **kwargs),
                timeout=settings.backend_timeout_seconds
            )
        except (asyncio.TimeoutError, APITimeoutError):
            raise BackendTimeoutError(operation, settings.backend_timeout_seconds)
        except RateLimitError as e:
            raise BackendQuotaExceededError(operation, str(e))
        except APIConnectionError as e:
            raise BackendProviderError(operation, f"connection failed: {e}")
        except OpenAIError as e:
            raise BackendProviderError(operation, str(e))

        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise BackendProviderError(operation, "empty response")

        self.logger.debug(f"Backend {operation} returned {len(content)} chars")
        return content

    def _build_messages(self, prompt: str, mode: str, reference: Optional[BackendReference]) -> list:
        if mode != "video" or reference is None:
            return [{"role": "user", "content": prompt}]

        text = prompt
        if reference.video_url:
            text = f"{prompt}\n\nVIDEO URL: {reference.video_url}"

        content = [{"type": "text", "text": text}]
        for image_url in reference.image_urls:
            content.append({"type": "image_url", "image_url": {"url": image_url, "detail": "high"}})
        return [{"role": "user", "content": content}]

    def _log_retry(self, retry_state) -> None:
        error = retry_state.outcome.exception()
        self.logger.warning(
            f"Backend call failed ({getattr(error, 'error_code', type(error).__name__)}), "
            f"retrying attempt {retry_state.attempt_number + 1}/{settings.backend_max_attempts}"
        )
