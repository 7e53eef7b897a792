import asyncio
import os
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, cast
from urllib.parse import urlparse

import openai
from openai import AsyncOpenAI

from chatrelay.config.models import ProviderConfig
from chatrelay.storage.models import Message
from chatrelay.utils.errors import ChatRelayError, TransportError, UpstreamError
from chatrelay.utils.logging import get_logger

from .base import BaseProvider

logger = get_logger(__name__)

REACHABILITY_TIMEOUT = 10.0


def translate_error(error: Exception) -> ChatRelayError:
    """Map SDK and transport exceptions onto TransportError/UpstreamError"""
    if isinstance(error, ChatRelayError):
        return error
    if isinstance(error, (openai.APITimeoutError, asyncio.TimeoutError)):
        return TransportError(f"Request timed out: {error}", hint="Check the endpoint or raise the timeout")
    if isinstance(error, openai.APIConnectionError):
        return TransportError(f"Connection failed: {error}", hint="Is the endpoint running and reachable?")
    if isinstance(error, openai.APIStatusError):
        return UpstreamError(
            f"API error {error.status_code}: {error.message}",
            status_code=error.status_code,
            hint="Check the model name and API key" if error.status_code in (401, 403, 404) else None,
        )
    if isinstance(error, (openai.APIError, ValueError, KeyError, IndexError, TypeError)):
        return UpstreamError(f"Malformed response from endpoint: {error}")
    return UpstreamError(f"Unexpected endpoint failure: {error}")


class OpenAIProvider(BaseProvider):
    """OpenAI-compatible chat completions (OpenAI, llama.cpp, Ollama, LM Studio, ...)"""

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        api_key = self._resolve_api_key()

        # An empty key makes the SDK omit the Authorization header
        self.client = AsyncOpenAI(
            api_key=api_key or "",
            base_url=config.base_url,
            timeout=config.timeout,
            max_retries=0,
        )

    def _resolve_api_key(self) -> Optional[str]:
        if self.config.api_key:
            return self.config.api_key
        if self.config.api_key_env:
            return os.getenv(self.config.api_key_env)
        return None

    def validate_config(self) -> bool:
        """Check that a base URL and model are set"""
        return bool(self.config.base_url and self.config.model)

    def _request_kwargs(
        self, messages: Sequence[Message], system_prompt: Optional[str], stream: bool
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.config.model,
            "messages": cast(Any, self.format_messages(messages, system_prompt)),
            "temperature": self.config.temperature,
            "stream": stream,
        }
        if self.config.max_tokens is not None:
            kwargs["max_tokens"] = self.config.max_tokens
        return kwargs

    async def complete(
        self, messages: Sequence[Message], system_prompt: Optional[str] = None
    ) -> str:
        """Non-streaming completion"""
        try:
            response = await self.client.chat.completions.create(
                **self._request_kwargs(messages, system_prompt, stream=False)
            )
            if not response.choices:
                raise UpstreamError("Response contained no choices")
            return response.choices[0].message.content or ""
        except ChatRelayError:
            raise
        except Exception as e:
            error = translate_error(e)
            logger.error(f"Completion failed with model {self.config.model}: {error}")
            raise error from e

    async def stream(
        self, messages: Sequence[Message], system_prompt: Optional[str] = None
    ) -> AsyncIterator[str]:
        """Streaming completion, or simulated streaming when disabled in config"""
        if not self.config.stream:
            async for chunk in self._simulated_stream(messages, system_prompt):
                yield chunk
            return

        try:
            stream = await self.client.chat.completions.create(
                **self._request_kwargs(messages, system_prompt, stream=True)
            )
            async for chunk in stream:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content
        except Exception as e:
            error = translate_error(e)
            logger.error(f"Stream failed with model {self.config.model}: {error}")
            raise error from e

    async def _simulated_stream(
        self, messages: Sequence[Message], system_prompt: Optional[str]
    ) -> AsyncIterator[str]:
        """Degraded mode: one blocking call, replayed as word chunks at a fixed pace"""
        content = await self.complete(messages, system_prompt)
        words = content.split(" ")
        last = len(words) - 1
        for i, word in enumerate(words):
            token = word if i == last else word + " "
            if token:
                yield token
            if i < last and self.config.stream_chunk_delay:
                await asyncio.sleep(self.config.stream_chunk_delay)

    async def list_models(self) -> List[str]:
        """Fetch available model ids"""
        try:
            models = await self.client.models.list()
            return sorted(model.id for model in models.data)
        except Exception as e:
            logger.error(f"Error listing models from {self.config.base_url}: {e}")
            return []

    async def check_reachable(self) -> bool:
        """Probe the /models endpoint"""
        parsed = urlparse(self.config.base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            logger.error(f"Invalid endpoint URL: {self.config.base_url}")
            return False

        try:
            await asyncio.wait_for(self.client.models.list(), timeout=REACHABILITY_TIMEOUT)
            return True
        except Exception as e:
            logger.warning(f"Endpoint {self.config.base_url} not reachable: {e}")
            return False
