# services/vision_client.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import openai
from openai import AsyncOpenAI

from config import Settings
from errors import (
    AuthError,
    ConfigurationError,
    EncodingError,
    ExternalBadRequestError,
    ServiceUnavailableError,
)
from prompts import CONNECTION_TEST_PROMPT, CONNECTION_TEST_SYSTEM, SYSTEM_PROMPT, build_prompt
from schemas import AnalysisOptions, VisionReply

logger = logging.getLogger(__name__)

NON_RETRYABLE_AUTH = (401, 403)


class EmptyResponseError(Exception):
    """The API answered, but without a usable message."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _reply_text(resp: Any, provider: str) -> str:
    choices = getattr(resp, "choices", None) or []
    if not choices:
        raise EmptyResponseError(f"No response from {provider}")
    message = getattr(choices[0], "message", None)
    content = (getattr(message, "content", None) or "").strip()
    if not content:
        raise EmptyResponseError(f"Empty response from {provider}")
    return content


class VisionClient:
    """
    Chat-completion client for a vision-capable model.

    Talks to any OpenAI-compatible endpoint (xAI Grok by default). The SDK's own
    retries are switched off; `analyze` retries transient failures itself with
    exponential backoff and fails fast on auth and bad-request responses.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[Any] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings
        self._client = client
        self._sleep = sleep

    @property
    def provider(self) -> str:
        return self.settings.provider.capitalize()

    def _get_client(self):
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.timeout,
                max_retries=0,
            )
        return self._client

    def _require_key(self) -> None:
        if not self.settings.api_key:
            raise ConfigurationError("API key not configured")

    async def analyze(self, data_url: str, options: Optional[AnalysisOptions] = None) -> VisionReply:
        self._require_key()
        if not data_url:
            raise EncodingError("No image data provided")

        messages = [
            {"role": "system", "content": SYSTEM_PROMPT.strip()},
            {"role": "user", "content": [
                {"type": "text", "text": build_prompt(options)},
                {"type": "image_url", "image_url": {"url": data_url}},
            ]},
        ]
        attempts = max(1, self.settings.retry_attempts)
        last_err: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            logger.info("%s analysis attempt %d/%d (model=%s)", self.provider, attempt, attempts, self.settings.model)
            try:
                resp = await self._get_client().chat.completions.create(
                    model=self.settings.model,
                    messages=messages,
                    max_tokens=self.settings.max_tokens,
                    temperature=self.settings.temperature,
                )
                text = _reply_text(resp, self.provider)
                usage = getattr(resp, "usage", None)
                return VisionReply(
                    text=text,
                    tokens_used=getattr(usage, "total_tokens", 0) or 0,
                    model=getattr(resp, "model", None) or self.settings.model,
                    attempt=attempt,
                )
            except openai.APIStatusError as e:
                if e.status_code in NON_RETRYABLE_AUTH:
                    logger.error("%s rejected credentials (%s)", self.provider, e.status_code)
                    raise AuthError(f"{self.provider} API authentication failed") from e
                if e.status_code == 400:
                    logger.error("%s rejected the request: %s", self.provider, e.message)
                    raise ExternalBadRequestError(f"Invalid request to {self.provider} API") from e
                last_err = e
            except (openai.APIError, EmptyResponseError) as e:
                last_err = e
            logger.warning("%s analysis attempt %d failed: %s", self.provider, attempt, last_err)

            if attempt < attempts:
                delay = self.settings.retry_delay_ms * (2 ** (attempt - 1)) / 1000.0
                logger.info("retrying in %.0fms", delay * 1000)
                await self._sleep(delay)

        logger.error("all %d %s attempts failed", attempts, self.provider)
        raise ServiceUnavailableError(
            f"{self.provider} service unavailable after {attempts} attempts: {last_err}")

    async def test_connection(self) -> Dict[str, Any]:
        """Trivial text-only round trip; never raises."""
        if not self.settings.api_key:
            return {"connected": False, "error": "API key not configured", "timestamp": _now_iso()}
        try:
            resp = await self._get_client().chat.completions.create(
                model=self.settings.test_model,
                messages=[
                    {"role": "system", "content": CONNECTION_TEST_SYSTEM},
                    {"role": "user", "content": CONNECTION_TEST_PROMPT},
                ],
                temperature=0,
            )
        except openai.APIStatusError as e:
            return {"connected": False, "error": f"HTTP {e.status_code}: {e.message}", "timestamp": _now_iso()}
        except openai.APIError as e:
            return {"connected": False, "error": str(e), "timestamp": _now_iso()}

        choices = getattr(resp, "choices", None) or []
        message = getattr(choices[0], "message", None) if choices else None
        content = getattr(message, "content", None)
        return {
            "connected": True,
            "model": self.settings.test_model,
            "response": content or "Test successful",
            "timestamp": _now_iso(),
        }
