from abc import ABC, abstractmethod
from typing import List, Optional

from chatrelay.storage.models import Conversation, Message


class ConversationRepository(ABC):
    """Typed persistence contract for conversations and their messages.

    Implementations must apply ``append_message`` (insert + ``updated_at``
    bump) as one atomic step with respect to concurrent readers.
    """

    @abstractmethod
    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        """Create and persist an empty conversation"""

    @abstractmethod
    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Return the conversation with its messages, or None"""

    @abstractmethod
    def append_message(self, conversation_id: str, message: Message) -> None:
        """Persist a message and bump the conversation's updated_at"""

    @abstractmethod
    def update_title(self, conversation_id: str, title: str) -> None:
        """Rename a conversation"""

    @abstractmethod
    def list_conversations(self) -> List[Conversation]:
        """All conversations, most recently updated first"""

    @abstractmethod
    def list_messages(self, conversation_id: str) -> List[Message]:
        """Messages ordered by timestamp, ties in insertion order"""

    @abstractmethod
    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation; returns False when it did not exist"""

    @abstractmethod
    def search_conversations(self, query: str) -> List[Conversation]:
        """Conversations whose title or any message content contains query"""


def ordered_messages(messages: List[Message]) -> List[Message]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(messages, key=lambda m: m.timestamp)


def matches_query(conversation: Conversation, query: str) -> bool:
    """Case-insensitive substring match on title or message content."""
    needle = query.lower()
    if needle in conversation.title.lower():
        return True
    return any(needle in message.content.lower() for message in conversation.messages)
