"""JSON-file repository: one document per conversation."""

import re
import threading
from pathlib import Path
from typing import List, Optional

from chatrelay.config.models import DEFAULT_CONVERSATION_TITLE
from chatrelay.storage.base import ConversationRepository, matches_query, ordered_messages
from chatrelay.storage.models import Conversation, Message
from chatrelay.utils.errors import ConversationNotFoundError, StorageError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonConversationRepository(ConversationRepository):
    """Stores each conversation as ``<id>.json`` and rewrites it atomically."""

    def __init__(self, storage_dir: Path):
        """Initialize the repository.

        Args:
            storage_dir: Directory holding the conversation files.
        """
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        # Single writer per process; file replacement keeps readers consistent
        self._lock = threading.Lock()
        logger.debug(f"JsonConversationRepository initialized with dir: {self.storage_dir}")

    def _get_path(self, conversation_id: str) -> Path:
        if not _SAFE_ID.match(conversation_id):
            raise StorageError(f"Invalid conversation id: {conversation_id!r}")
        return self.storage_dir / f"{conversation_id}.json"

    def _load(self, conversation_id: str) -> Optional[Conversation]:
        path = self._get_path(conversation_id)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                data = f.read()
            return Conversation.model_validate_json(data)
        except ValueError as e:
            # Covers undecodable bytes, malformed JSON and schema violations
            logger.warning(f"Corrupted conversation file {path}: {e}")
            return None
        except OSError as e:
            raise StorageError(f"Failed to read conversation {conversation_id}: {e}") from e

    def _save(self, conversation: Conversation) -> None:
        path = self._get_path(conversation.id)
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(conversation.model_dump_json(indent=2))
            tmp_path.replace(path)
            logger.debug(f"Saved conversation: {conversation.id}")
        except OSError as e:
            logger.error(f"Failed to save conversation {conversation.id}: {e}")
            if tmp_path.exists():
                tmp_path.unlink()
            raise StorageError(f"Failed to save conversation {conversation.id}: {e}") from e

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._load(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _load_all(self) -> List[Conversation]:
        conversations = []
        for path in self.storage_dir.glob("*.json"):
            conversation = self._load(path.stem)
            if conversation is not None:
                conversations.append(conversation)
        conversations.sort(key=lambda c: c.updated_at, reverse=True)
        return conversations

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        conversation = Conversation(title=title or DEFAULT_CONVERSATION_TITLE)
        with self._lock:
            self._save(conversation)
        logger.info(f"Created conversation: {conversation.id}")
        return conversation

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self._load(conversation_id)

    def append_message(self, conversation_id: str, message: Message) -> None:
        with self._lock:
            conversation = self._require(conversation_id)
            conversation.messages.append(message)
            conversation.updated_at = max(conversation.updated_at, message.timestamp)
            self._save(conversation)

    def update_title(self, conversation_id: str, title: str) -> None:
        with self._lock:
            conversation = self._require(conversation_id)
            conversation.title = title
            self._save(conversation)

    def list_conversations(self) -> List[Conversation]:
        return self._load_all()

    def list_messages(self, conversation_id: str) -> List[Message]:
        return ordered_messages(self._require(conversation_id).messages)

    def delete_conversation(self, conversation_id: str) -> bool:
        path = self._get_path(conversation_id)
        with self._lock:
            if not path.exists():
                logger.warning(f"Conversation not found: {conversation_id}")
                return False
            try:
                path.unlink()
            except OSError as e:
                raise StorageError(f"Failed to delete conversation {conversation_id}: {e}") from e
        logger.info(f"Deleted conversation: {conversation_id}")
        return True

    def search_conversations(self, query: str) -> List[Conversation]:
        return [c for c in self._load_all() if matches_query(c, query)]
