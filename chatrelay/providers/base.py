import inspect
from abc import ABC, abstractmethod
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from chatrelay.config.models import ProviderConfig
from chatrelay.storage.models import Message

TokenCallback = Callable[[str], Union[None, Awaitable[None]]]


async def emit_token(on_token: Optional[TokenCallback], token: str) -> None:
    """Deliver a token to a sync or async callback."""
    if on_token is None:
        return
    result = on_token(token)
    if inspect.isawaitable(result):
        await result


class BaseProvider(ABC):
    """Abstract base for model gateways"""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.name = self.__class__.__name__.replace("Provider", "").lower()

    @abstractmethod
    async def complete(
        self, messages: Sequence[Message], system_prompt: Optional[str] = None
    ) -> str:
        """Send completion request (non-streaming) and return the assistant text"""
        pass

    @abstractmethod
    def stream(
        self, messages: Sequence[Message], system_prompt: Optional[str] = None
    ) -> AsyncIterator[str]:
        """Yield response chunks in generation order"""
        pass

    @abstractmethod
    async def list_models(self) -> List[str]:
        """Return model ids offered by the endpoint; empty on failure"""
        pass

    @abstractmethod
    async def check_reachable(self) -> bool:
        """Return True if the endpoint answers; never raises"""
        pass

    @abstractmethod
    def validate_config(self) -> bool:
        """Check if provider is properly configured"""
        pass

    def is_available(self) -> bool:
        return self.validate_config()

    async def complete_stream(
        self,
        messages: Sequence[Message],
        system_prompt: Optional[str] = None,
        on_token: Optional[TokenCallback] = None,
    ) -> str:
        """Stream a completion into on_token, one call per chunk.

        Resolves once the stream ends and returns the concatenated text.
        """
        chunks: List[str] = []
        async for chunk in self.stream(messages, system_prompt):
            chunks.append(chunk)
            await emit_token(on_token, chunk)
        return "".join(chunks)

    @staticmethod
    def format_messages(
        messages: Sequence[Message], system_prompt: Optional[str] = None
    ) -> List[Dict[str, str]]:
        """Convert stored messages to role/content pairs, system prompt first"""
        formatted = [{"role": m.role, "content": m.content} for m in messages]
        if system_prompt:
            formatted.insert(0, {"role": "system", "content": system_prompt})
        return formatted
