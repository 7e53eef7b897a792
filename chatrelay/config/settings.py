import json
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from chatrelay.config.config_manager import ConfigManager
from chatrelay.config.models import ProviderConfig, SearchConfig
from chatrelay.storage.kv import KeyValueStore
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

KEYS = {
    "system_prompt": "chatrelay.system_prompt",
    "provider": "chatrelay.provider_config",
    "search": "chatrelay.search_config",
}


class SettingsService:
    """User-editable settings layered over the YAML defaults.

    Values saved here win over ``config.yaml``. Reads never raise: a missing
    or unreadable entry falls back to the configured default.
    """

    def __init__(self, store: KeyValueStore, config_manager: ConfigManager):
        self.store = store
        self.config_manager = config_manager

    def _load_model(self, key: str, model_cls: Type[ModelT], default: ModelT) -> ModelT:
        raw = self.store.get(key)
        if raw is None:
            return default
        try:
            return model_cls.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable setting {key}: {e}")
            return default

    def get_system_prompt(self) -> str:
        prompt = self.store.get(KEYS["system_prompt"])
        return prompt or self.config_manager.get_chat_config().system_prompt

    def save_system_prompt(self, prompt: str) -> None:
        self.store.set(KEYS["system_prompt"], prompt)
        logger.debug("System prompt updated")

    def get_provider_config(self) -> ProviderConfig:
        return self._load_model(
            KEYS["provider"], ProviderConfig, self.config_manager.get_provider_config()
        )

    def save_provider_config(self, config: ProviderConfig) -> None:
        self.store.set(KEYS["provider"], config.model_dump_json())
        logger.info(f"Provider config saved: model={config.model} base_url={config.base_url}")

    def get_search_config(self) -> SearchConfig:
        return self._load_model(
            KEYS["search"], SearchConfig, self.config_manager.get_search_config()
        )

    def save_search_config(self, config: SearchConfig) -> None:
        self.store.set(KEYS["search"], config.model_dump_json())
        logger.info(f"Search config saved: enabled={config.enabled}")

    def reset(self, key: Optional[str] = None) -> None:
        """Drop one override (by short name) or all of them"""
        if key is None:
            for full_key in KEYS.values():
                self.store.remove(full_key)
        else:
            self.store.remove(KEYS[key])
