from pathlib import Path
from typing import Dict, List, Optional, Type

from chatrelay.config.models import ProviderConfig
from chatrelay.config.settings import SettingsService
from chatrelay.providers.base import BaseProvider
from chatrelay.providers.openai_provider import OpenAIProvider
from chatrelay.utils.cache import CacheManager
from chatrelay.utils.errors import ConfigError, ModelNotFoundError, ProviderNotConfigured
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class ProviderManager:
    """Builds the model gateway from the current settings and keeps it bound"""

    # Registry of available provider classes, keyed by ProviderConfig.type
    PROVIDER_CLASSES: Dict[str, Type[BaseProvider]] = {
        "openai-compatible": OpenAIProvider,
    }

    def __init__(self, settings: SettingsService, cache_dir: Optional[Path] = None):
        self.settings = settings
        self._provider: Optional[BaseProvider] = None
        self._pinned = False
        self.cache = CacheManager(cache_dir) if cache_dir else None

    @classmethod
    def supported_types(cls) -> List[str]:
        return list(cls.PROVIDER_CLASSES.keys())

    def create_provider(self, config: ProviderConfig) -> BaseProvider:
        """Instantiate the gateway variant for a config snapshot"""
        provider_class = self.PROVIDER_CLASSES.get(config.type)
        if not provider_class:
            raise ConfigError(
                f"Unknown provider type: {config.type}",
                hint=f"Supported types: {', '.join(self.supported_types())}",
            )
        return provider_class(config)

    def bind(self, provider: BaseProvider) -> None:
        """Pin an explicitly constructed gateway, ignoring stored settings"""
        self._provider = provider
        self._pinned = True
        logger.debug(f"Bound provider: {provider.name}")

    def unbind(self) -> None:
        self._provider = None
        self._pinned = False

    def get_provider(self) -> Optional[BaseProvider]:
        """Return the active gateway, rebuilding it when the settings changed"""
        if self._pinned:
            return self._provider

        config = self.settings.get_provider_config()
        if self._provider is not None and self._provider.config == config:
            return self._provider

        if self._provider is not None and self.cache:
            # Endpoint settings changed; the old listing may be stale
            self.cache.invalidate(self._cache_key(self._provider))

        try:
            provider = self.create_provider(config)
        except ConfigError as e:
            logger.error(f"Failed to initialize provider: {e}")
            return None

        if not provider.is_available():
            logger.warning(
                f"Provider {config.type} is not available (check base_url and model)"
            )
            return None

        self._provider = provider
        logger.debug(f"Initialized provider: {config.type} model={config.model}")
        return provider

    def require_provider(self) -> BaseProvider:
        provider = self.get_provider()
        if provider is None:
            raise ProviderNotConfigured()
        return provider

    def _cache_key(self, provider: BaseProvider) -> str:
        return f"models:{provider.config.base_url}"

    async def list_models(self, use_cache: bool = True) -> List[str]:
        """Model ids offered by the active endpoint; empty when none is configured"""
        provider = self.get_provider()
        if provider is None:
            return []

        key = self._cache_key(provider)
        if use_cache and self.cache:
            cached = self.cache.get(key, expiry_seconds=3600)
            if cached:
                logger.debug("Returning cached models")
                return list(cached)

        models = await provider.list_models()
        if models and self.cache:
            self.cache.set(key, models)
        return models

    async def check_reachable(self) -> bool:
        provider = self.get_provider()
        if provider is None:
            return False
        return await provider.check_reachable()

    async def ensure_model_available(self) -> None:
        """Raise ModelNotFoundError if the endpoint does not list the configured model.

        An endpoint that lists nothing is given the benefit of the doubt.
        """
        provider = self.require_provider()
        models = await self.list_models(use_cache=False)
        if models and provider.config.model not in models:
            raise ModelNotFoundError(provider.config.model, models)
