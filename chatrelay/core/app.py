from pathlib import Path
from typing import Optional

from chatrelay.config.config_manager import ConfigManager
from chatrelay.config.settings import SettingsService
from chatrelay.core.orchestrator import ConversationOrchestrator
from chatrelay.core.provider_manager import ProviderManager
from chatrelay.parsing.channels import ParsedResponse, parse_response
from chatrelay.search.base import BaseSearchProvider
from chatrelay.storage.base import ConversationRepository
from chatrelay.storage.json_store import JsonConversationRepository
from chatrelay.storage.kv import JsonFileKeyValueStore, KeyValueStore
from chatrelay.storage.memory import MemoryConversationRepository
from chatrelay.storage.models import Message
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class ChatRelayApp:
    """
    Application context that constructs all components and wires them together.

    Every collaborator can be injected; anything left out is built from the
    YAML configuration.
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        repository: Optional[ConversationRepository] = None,
        settings_store: Optional[KeyValueStore] = None,
        search_provider: Optional[BaseSearchProvider] = None,
    ):
        self.config_manager = config_manager
        self.settings = SettingsService(
            settings_store or JsonFileKeyValueStore(config_manager.config_dir / "settings.json"),
            config_manager,
        )
        self.repository = repository or self._build_repository(config_manager)
        self.provider_manager = ProviderManager(
            self.settings, cache_dir=config_manager.config_dir / "cache"
        )
        self.orchestrator = ConversationOrchestrator(
            self.repository,
            self.provider_manager,
            self.settings,
            chat_config=config_manager.get_chat_config(),
            search_provider=search_provider,
        )
        logger.debug("ChatRelayApp initialized")

    @staticmethod
    def _build_repository(config_manager: ConfigManager) -> ConversationRepository:
        backend = config_manager.get("storage.backend", "json")
        if backend == "memory":
            return MemoryConversationRepository()
        storage_path: Path = config_manager.get_storage_path()
        return JsonConversationRepository(storage_path)

    @classmethod
    def create(
        cls, config_path: Optional[str] = None, config_dir: Optional[str] = None
    ) -> "ChatRelayApp":
        """
        Factory method to create a ChatRelayApp from a config file.
        """
        return cls(ConfigManager(config_path=config_path, config_dir=config_dir))

    @staticmethod
    def parse_message(message: Message) -> ParsedResponse:
        """Display form of a stored message; the stored content stays raw."""
        return parse_response(message.content)
