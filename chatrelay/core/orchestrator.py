"""Turn orchestration: persist, optionally search, generate, commit."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from chatrelay.config.models import ChatConfig, SearchConfig
from chatrelay.config.settings import SettingsService
from chatrelay.core.prompts import (
    build_augmented_prompt,
    build_decision_prompt,
    extract_search_query,
)
from chatrelay.core.provider_manager import ProviderManager
from chatrelay.providers.base import BaseProvider, TokenCallback, emit_token
from chatrelay.search.base import BaseSearchProvider
from chatrelay.search.searxng import SearXNGSearch
from chatrelay.storage.base import ConversationRepository
from chatrelay.storage.models import Conversation, Message
from chatrelay.utils.errors import ConversationNotFoundError
from chatrelay.utils.logging import get_logger

logger = get_logger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    USER_COMMITTED = "user_committed"
    SEARCH_DECIDING = "search_deciding"
    SEARCH_EXECUTING = "search_executing"
    SEARCH_AUGMENTING = "search_augmenting"
    GENERATING = "generating"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass
class TurnContext:
    """Mutable state of one in-flight turn. Never shared between turns."""

    conversation_id: str
    user_message: Message
    history: List[Message] = field(default_factory=list)
    cancel_event: Optional[asyncio.Event] = None
    state: TurnState = TurnState.IDLE
    search_query: Optional[str] = None
    search_performed: bool = False
    chunks: List[str] = field(default_factory=list)

    def transition(self, state: TurnState) -> None:
        logger.debug(f"Turn {self.user_message.id}: {self.state.value} -> {state.value}")
        self.state = state

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    @property
    def text(self) -> str:
        return "".join(self.chunks)


def derive_title(text: str, length: int = 30) -> str:
    """First ``length`` characters of the text, with an ellipsis if truncated."""
    text = " ".join(text.split())
    return text[:length] + ("..." if len(text) > length else "")


class ConversationOrchestrator:
    """Runs chat turns against the model and search gateways.

    Holds no per-turn state of its own, so turns for different conversations
    may run concurrently.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        provider_manager: ProviderManager,
        settings: SettingsService,
        chat_config: Optional[ChatConfig] = None,
        search_provider: Optional[BaseSearchProvider] = None,
    ):
        self.repository = repository
        self.provider_manager = provider_manager
        self.settings = settings
        self.chat_config = chat_config or settings.config_manager.get_chat_config()
        self.search_provider = search_provider

    # Conversation management

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        return self.repository.create_conversation(title or self.chat_config.default_title)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return self.repository.get_conversation(conversation_id)

    def list_conversations(self) -> List[Conversation]:
        return self.repository.list_conversations()

    def list_messages(self, conversation_id: str) -> List[Message]:
        return self.repository.list_messages(conversation_id)

    def rename_conversation(self, conversation_id: str, title: str) -> None:
        self.repository.update_title(conversation_id, title)

    def delete_conversation(self, conversation_id: str) -> bool:
        return self.repository.delete_conversation(conversation_id)

    def search_conversations(self, query: str) -> List[Conversation]:
        return self.repository.search_conversations(query)

    # Turns

    def _require_conversation(self, conversation_id: str) -> Conversation:
        conversation = self.repository.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _begin_turn(
        self,
        conversation_id: str,
        user_text: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TurnContext:
        user_message = Message(role="user", content=user_text)
        # Persist first so a failed turn never loses the user's input
        self.repository.append_message(conversation_id, user_message)

        turn = TurnContext(
            conversation_id=conversation_id, user_message=user_message, cancel_event=cancel_event
        )
        turn.transition(TurnState.USER_COMMITTED)

        history = self.repository.list_messages(conversation_id)
        if not any(m.id == user_message.id for m in history):
            logger.debug("User message not visible in history yet, appending locally")
            history.append(user_message)
        turn.history = history
        return turn

    def _commit_turn(self, conversation: Conversation, turn: TurnContext) -> Message:
        assistant_message = Message(role="assistant", content=turn.text)
        self.repository.append_message(turn.conversation_id, assistant_message)
        self._maybe_assign_title(conversation, turn.user_message.content)
        turn.transition(TurnState.COMMITTED)
        logger.info(
            f"Committed turn in conversation {turn.conversation_id} "
            f"({len(assistant_message.content)} chars, searched={turn.search_performed})"
        )
        return assistant_message

    def _maybe_assign_title(self, conversation: Conversation, user_text: str) -> None:
        if conversation.title != self.chat_config.default_title:
            return
        title = derive_title(user_text, self.chat_config.title_length)
        if not title:
            return
        self.repository.update_title(conversation.id, title)
        logger.debug(f"Conversation {conversation.id} titled {title!r}")

    async def send_turn(
        self,
        conversation_id: str,
        user_text: str,
        search_enabled: bool = False,
        on_token: Optional[TokenCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Message:
        """Send one user turn and stream the answer to on_token.

        The returned assistant message holds the raw accumulated model output.
        Transport and upstream failures are raised as-is after the user's
        message has been persisted; nothing else is written for a failed turn.
        Setting ``cancel_event`` stops token delivery, not the request.
        """
        provider = self.provider_manager.require_provider()
        conversation = self._require_conversation(conversation_id)
        turn = self._begin_turn(conversation_id, user_text, cancel_event)
        system_prompt = self.settings.get_system_prompt()

        try:
            handled = False
            if search_enabled:
                handled = await self._run_search_protocol(provider, turn, system_prompt, on_token)
            if not handled:
                turn.transition(TurnState.GENERATING)
                await self._stream_into(provider, turn, system_prompt, on_token)
        except Exception as e:
            turn.transition(TurnState.FAILED)
            logger.error(f"Turn failed in conversation {conversation_id}: {e}")
            raise

        return self._commit_turn(conversation, turn)

    async def send_message(self, conversation_id: str, user_text: str) -> Message:
        """Non-streaming variant of send_turn without the search step."""
        provider = self.provider_manager.require_provider()
        conversation = self._require_conversation(conversation_id)
        turn = self._begin_turn(conversation_id, user_text)
        system_prompt = self.settings.get_system_prompt()

        turn.transition(TurnState.GENERATING)
        try:
            turn.chunks.append(await provider.complete(turn.history, system_prompt))
        except Exception as e:
            turn.transition(TurnState.FAILED)
            logger.error(f"Turn failed in conversation {conversation_id}: {e}")
            raise

        return self._commit_turn(conversation, turn)

    async def _stream_into(
        self,
        provider: BaseProvider,
        turn: TurnContext,
        system_prompt: str,
        on_token: Optional[TokenCallback],
    ) -> None:
        async def forward(token: str) -> None:
            turn.chunks.append(token)
            if not turn.cancelled:
                await emit_token(on_token, token)

        await provider.complete_stream(turn.history, system_prompt, on_token=forward)

    def _search_provider_for(self, config: SearchConfig) -> BaseSearchProvider:
        if self.search_provider is not None:
            return self.search_provider
        return SearXNGSearch.from_config(config)

    async def _run_search_protocol(
        self,
        provider: BaseProvider,
        turn: TurnContext,
        system_prompt: str,
        on_token: Optional[TokenCallback],
    ) -> bool:
        """Run the optional search step.

        Returns True when the turn's answer has been produced here, False to
        continue with plain generation.
        """
        search_config = self.settings.get_search_config()
        if not search_config.enabled:
            logger.debug("Web search requested but the search backend is disabled")
            return False

        question = turn.user_message.content
        decision: Optional[str] = None
        try:
            if self.chat_config.search_policy == "always":
                query = question
            else:
                turn.transition(TurnState.SEARCH_DECIDING)
                decision = await provider.complete_stream(
                    turn.history, build_decision_prompt(system_prompt)
                )
                query = extract_search_query(decision)

            if query is not None:
                turn.search_query = query
                turn.transition(TurnState.SEARCH_EXECUTING)
                search = self._search_provider_for(search_config)
                results = await search.search(query, search_config.limit)
                context = search.render_context(results)
                logger.info(f"Web search for {query!r} returned {len(results)} results")
        except Exception as e:
            logger.warning(f"Web search step failed, answering without it: {e}")
            return False

        if query is None:
            # The model answered directly; its decision output is the answer
            logger.debug("Model did not request a search")
            turn.transition(TurnState.GENERATING)
            turn.chunks.append(decision or "")
            if decision and not turn.cancelled:
                await emit_token(on_token, decision)
            return True

        turn.transition(TurnState.SEARCH_AUGMENTING)
        augmented_prompt = build_augmented_prompt(system_prompt, question, query, context)
        await self._stream_into(provider, turn, augmented_prompt, on_token)
        turn.search_performed = True
        return True
