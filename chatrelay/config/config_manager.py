import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from chatrelay.config.models import AppConfig, ChatConfig, ProviderConfig, SearchConfig
from chatrelay.utils.errors import ConfigError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class ConfigManager:
    """Manages configuration from YAML and environment variables"""

    def __init__(self, config_path: Optional[str] = None, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".chatrelay"
        self.config_dir.mkdir(parents=True, exist_ok=True)

        load_dotenv()

        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = self.config_dir / "config.yaml"

        if not self.config_path.exists():
            self._create_default_config()

        self._config_data = self._load_config_file()
        try:
            self.config = AppConfig(**self._config_data)
        except ValueError as e:
            raise ConfigError(
                f"Invalid configuration in {self.config_path}: {e}",
                hint="Fix or delete the file to regenerate defaults",
            ) from e
        logger.debug(f"Config loaded from {self.config_path}")

    def _default_config(self) -> Dict[str, Any]:
        defaults = AppConfig().model_dump()
        defaults["storage"]["path"] = str(self.config_dir / "conversations")
        return defaults

    def _create_default_config(self):
        """Create default configuration file"""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(self._default_config(), f, default_flow_style=False)
        logger.info(f"Created default config at {self.config_path}")

    def _load_config_file(self) -> Dict:
        """Load configuration from YAML file"""
        with open(self.config_path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def get(self, key: str, default=None) -> Any:
        """Get configuration value using dot notation"""
        return self.config.get_dot_notation(key, default)

    def get_provider_config(self) -> ProviderConfig:
        """Get the model endpoint configuration"""
        return self.config.provider

    def get_search_config(self) -> SearchConfig:
        return self.config.search

    def get_chat_config(self) -> ChatConfig:
        return self.config.chat

    def get_storage_path(self) -> Path:
        """Directory for file-backed storage"""
        if self.config.storage.path:
            return Path(self.config.storage.path).expanduser()
        return self.config_dir / "conversations"

    def save(self):
        """Save current configuration to file atomically"""
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.config_path.parent), prefix=".config-", suffix=".yaml"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.dump(self.config.model_dump(), f, default_flow_style=False)
            shutil.move(tmp_path, str(self.config_path))
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.info(f"Config saved to {self.config_path}")
