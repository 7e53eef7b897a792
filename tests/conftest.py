"""
Shared pytest fixtures and test doubles for ChatRelay tests.

The scripted gateways below replace the network-facing model and search
backends so orchestration can be tested without an endpoint.
"""

from typing import AsyncIterator, List, Optional, Sequence

import pytest

from chatrelay.config.config_manager import ConfigManager
from chatrelay.config.models import ProviderConfig, SearchConfig
from chatrelay.config.settings import SettingsService
from chatrelay.core.orchestrator import ConversationOrchestrator
from chatrelay.core.provider_manager import ProviderManager
from chatrelay.providers.base import BaseProvider
from chatrelay.search.base import BaseSearchProvider, SearchResult
from chatrelay.storage.kv import MemoryKeyValueStore
from chatrelay.storage.memory import MemoryConversationRepository
from chatrelay.storage.models import Message

# =============================================================================
# Test doubles
# =============================================================================


class ScriptedProvider(BaseProvider):
    """Model gateway that replays scripted responses, one per call.

    A response may be a list of chunks, a plain string (one chunk), or an
    exception instance to raise before any chunk is produced.
    """

    def __init__(self, responses=None, config: Optional[ProviderConfig] = None):
        super().__init__(config or ProviderConfig())
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    def _next(self, messages, system_prompt):
        self.calls.append({"messages": list(messages), "system_prompt": system_prompt})
        if not self.responses:
            raise AssertionError("ScriptedProvider ran out of responses")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return [response] if isinstance(response, str) else list(response)

    async def complete(self, messages: Sequence[Message], system_prompt: Optional[str] = None) -> str:
        return "".join(self._next(messages, system_prompt))

    async def stream(
        self, messages: Sequence[Message], system_prompt: Optional[str] = None
    ) -> AsyncIterator[str]:
        for chunk in self._next(messages, system_prompt):
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk

    async def list_models(self) -> List[str]:
        return [self.config.model]

    async def check_reachable(self) -> bool:
        return True

    def validate_config(self) -> bool:
        return True


class FakeSearch(BaseSearchProvider):
    """Search gateway returning fixed results and recording queries"""

    def __init__(self, results=None, error: Optional[Exception] = None):
        self.results = results if results is not None else [
            SearchResult(title="Result", url="https://example.com", snippet="Snippet")
        ]
        self.error = error
        self.queries: List[str] = []
        self.limits: List[int] = []

    async def search(self, query: str, limit: int = 5) -> List[SearchResult]:
        self.queries.append(query)
        self.limits.append(limit)
        if self.error is not None:
            raise self.error
        return self.results[:limit]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config_manager(tmp_path) -> ConfigManager:
    """ConfigManager writing its defaults into a temporary directory."""
    return ConfigManager(config_dir=str(tmp_path / ".chatrelay"))


@pytest.fixture
def settings(config_manager) -> SettingsService:
    return SettingsService(MemoryKeyValueStore(), config_manager)


@pytest.fixture
def repository() -> MemoryConversationRepository:
    return MemoryConversationRepository()


@pytest.fixture
def enable_search(settings):
    """Turn the search backend on in settings."""
    settings.save_search_config(SearchConfig(enabled=True))
    return settings


@pytest.fixture
def make_orchestrator(repository, settings):
    """Build an orchestrator around a scripted provider and fake search."""

    def _make(responses=None, search=None, chat_config=None):
        provider = ScriptedProvider(responses)
        manager = ProviderManager(settings)
        manager.bind(provider)
        orchestrator = ConversationOrchestrator(
            repository,
            manager,
            settings,
            chat_config=chat_config,
            search_provider=search if search is not None else FakeSearch(),
        )
        return orchestrator, provider

    return _make
