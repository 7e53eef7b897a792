"""Pydantic models for conversation storage."""

import time
import uuid
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from chatrelay.config.models import DEFAULT_CONVERSATION_TITLE

Role = Literal["user", "assistant", "system"]


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Message(BaseModel):
    """Single chat message. Content is always the raw model output."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str
    timestamp: int = Field(default_factory=now_millis)


class Conversation(BaseModel):
    """Conversation with its ordered messages."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = DEFAULT_CONVERSATION_TITLE
    created_at: int = Field(default_factory=now_millis)
    updated_at: int = 0
    messages: List[Message] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_updated_at(self) -> "Conversation":
        if not self.updated_at:
            self.updated_at = self.created_at
        return self
