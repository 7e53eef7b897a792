from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."
DEFAULT_CONVERSATION_TITLE = "New Chat"


class ProviderConfig(BaseModel):
    """Snapshot of the model endpoint settings; never mutated mid-request."""

    model_config = ConfigDict(frozen=True)

    type: Literal["openai-compatible"] = "openai-compatible"
    base_url: str = "http://localhost:8080/v1"
    model: str = "llama-3"
    api_key: Optional[str] = None
    api_key_env: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)
    timeout: float = Field(default=60.0, gt=0)
    stream: bool = True
    stream_chunk_delay: float = Field(default=0.03, ge=0)


class SearchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    base_url: str = "http://localhost:8888"
    limit: int = Field(default=5, gt=0)
    timeout: float = Field(default=15.0, gt=0)


class ChatConfig(BaseModel):
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    search_policy: Literal["sentinel", "always"] = "sentinel"
    default_title: str = DEFAULT_CONVERSATION_TITLE
    title_length: int = Field(default=30, gt=0)


class StorageConfig(BaseModel):
    backend: Literal["memory", "json"] = "json"
    path: Optional[str] = None


class AppConfig(BaseModel):
    version: str = "1.0"
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def get_dot_notation(self, key: str, default: Any = None) -> Any:
        """Get value using dot notation from the config model"""
        parts = key.split(".")
        current: Any = self
        for part in parts:
            if isinstance(current, BaseModel) and part in type(current).model_fields:
                current = getattr(current, part)
            elif isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current
