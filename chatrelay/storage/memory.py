import threading
from typing import Dict, List, Optional

from chatrelay.config.models import DEFAULT_CONVERSATION_TITLE
from chatrelay.storage.base import ConversationRepository, matches_query, ordered_messages
from chatrelay.storage.models import Conversation, Message
from chatrelay.utils.errors import ConversationNotFoundError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class MemoryConversationRepository(ConversationRepository):
    """In-process repository. Callers always receive copies."""

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._lock = threading.Lock()

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        conversation = Conversation(title=title or DEFAULT_CONVERSATION_TITLE)
        with self._lock:
            self._conversations[conversation.id] = conversation
        logger.debug(f"Created conversation {conversation.id}")
        return conversation.model_copy(deep=True)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            conversation = self._conversations.get(conversation_id)
            return conversation.model_copy(deep=True) if conversation else None

    def append_message(self, conversation_id: str, message: Message) -> None:
        with self._lock:
            conversation = self._require(conversation_id)
            conversation.messages.append(message)
            conversation.updated_at = max(conversation.updated_at, message.timestamp)

    def update_title(self, conversation_id: str, title: str) -> None:
        with self._lock:
            self._require(conversation_id).title = title

    def list_conversations(self) -> List[Conversation]:
        with self._lock:
            conversations = [c.model_copy(deep=True) for c in self._conversations.values()]
        conversations.sort(key=lambda c: c.updated_at, reverse=True)
        return conversations

    def list_messages(self, conversation_id: str) -> List[Message]:
        with self._lock:
            return ordered_messages(list(self._require(conversation_id).messages))

    def delete_conversation(self, conversation_id: str) -> bool:
        with self._lock:
            return self._conversations.pop(conversation_id, None) is not None

    def search_conversations(self, query: str) -> List[Conversation]:
        return [c for c in self.list_conversations() if matches_query(c, query)]
