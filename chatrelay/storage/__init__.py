"""Conversation and settings persistence for ChatRelay."""

from chatrelay.storage.base import ConversationRepository
from chatrelay.storage.json_store import JsonConversationRepository
from chatrelay.storage.kv import JsonFileKeyValueStore, KeyValueStore, MemoryKeyValueStore
from chatrelay.storage.memory import MemoryConversationRepository
from chatrelay.storage.models import Conversation, Message

__all__ = [
    "Conversation",
    "Message",
    "ConversationRepository",
    "MemoryConversationRepository",
    "JsonConversationRepository",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "JsonFileKeyValueStore",
]
