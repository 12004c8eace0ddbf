"""Concrete implementations for the conversation store."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, List, Optional

from .models import DEFAULT_MODELS, DEFAULT_TITLE, ChatMessage, Conversation, Model


class Store(ABC):
    """Interface for the state that owns conversations and streaming progress.

    Every mutation is synchronous, so on a single event loop no operation
    observes a partially applied one. Operations that target a conversation
    by id silently do nothing when the id is unknown, since a turn may keep
    writing after its conversation was deleted.

    Engines read the state through these attributes, which subclasses get by
    calling ``Store.__init__``:

    Attributes
    ----------
    conversations : List[Conversation]
        Newest first.
    current_conversation_id : str or None
        The selected conversation. It may name a conversation that no longer
        exists.
    available_models : List[Model]
        Models offered for selection.
    selected_model : Model
        Model used for new turns and new conversations.
    is_streaming : bool
        True while a turn is in flight, whichever conversation it targets.
    streaming_content : str
        The reply text received so far for the turn in flight.
    error : str or None
        The last turn failure, shown to the user as a banner.
    """

    def __init__(
        self,
        models: Optional[List[Model]] = None,
        selected_model: Optional[Model] = None,
    ):
        self.conversations: List[Conversation] = []
        self.current_conversation_id: Optional[str] = None
        self.available_models: List[Model] = list(models or DEFAULT_MODELS)
        self.selected_model: Model = selected_model or self.available_models[0]
        self.is_streaming: bool = False
        self.streaming_content: str = ""
        self.error: Optional[str] = None

    @property
    def current_conversation(self) -> Optional[Conversation]:
        if self.current_conversation_id is None:
            return None
        return self.get_conversation(self.current_conversation_id)

    @abstractmethod
    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        """Creates an empty conversation, prepends it and selects it."""
        pass

    @abstractmethod
    def select_conversation(self, convo_id: Optional[str]) -> None:
        """Points the selection at ``convo_id`` without checking it exists."""
        pass

    @abstractmethod
    def delete_conversation(self, convo_id: str) -> None:
        """Removes a conversation and clears the selection if it pointed at it."""
        pass

    @abstractmethod
    def get_conversation(self, convo_id: str) -> Optional[Conversation]:
        """Returns the conversation with ``convo_id``, or None."""
        pass

    @abstractmethod
    def set_conversations(self, conversations: List[Conversation]) -> None:
        """Replaces the whole conversation list."""
        pass

    @abstractmethod
    def update_conversation(self, convo_id: str, **updates: Any) -> None:
        """Replaces fields of one conversation."""
        pass

    @abstractmethod
    def append_message(self, convo_id: str, message: ChatMessage) -> None:
        """Appends a message and bumps ``updated_at``."""
        pass

    @abstractmethod
    def replace_last_message_content(self, convo_id: str, content: str) -> None:
        """Replaces the content of the final message of a conversation."""
        pass

    @abstractmethod
    def set_selected_model(self, model: Model) -> None:
        pass

    @abstractmethod
    def set_available_models(self, models: List[Model]) -> None:
        pass

    @abstractmethod
    def set_streaming(self, streaming: bool) -> None:
        pass

    @abstractmethod
    def append_streaming_content(self, text: str) -> None:
        pass

    @abstractmethod
    def clear_streaming_content(self) -> None:
        pass

    @abstractmethod
    def set_error(self, message: Optional[str]) -> None:
        """Sets or clears the error shown to the user as a banner."""
        pass


class InMemory(Store):
    """Keeps all state in process memory.

    Conversations are treated as values: a mutation builds a new conversation
    object and a new list, so objects handed out earlier are never changed
    underneath their readers.
    """

    def create_conversation(self, title: Optional[str] = None) -> Conversation:
        now = datetime.now(timezone.utc)
        conversation = Conversation(
            title=title or DEFAULT_TITLE,
            model=self.selected_model.id,
            created_at=now,
            updated_at=now,
        )
        self.conversations = [conversation, *self.conversations]
        self.current_conversation_id = conversation.id
        return conversation

    def select_conversation(self, convo_id: Optional[str]) -> None:
        self.current_conversation_id = convo_id

    def delete_conversation(self, convo_id: str) -> None:
        self.conversations = [c for c in self.conversations if c.id != convo_id]
        if self.current_conversation_id == convo_id:
            self.current_conversation_id = None

    def get_conversation(self, convo_id: str) -> Optional[Conversation]:
        return next((c for c in self.conversations if c.id == convo_id), None)

    def set_conversations(self, conversations: List[Conversation]) -> None:
        self.conversations = [c.model_copy(deep=True) for c in conversations]

    def _replace(self, convo_id: str, build) -> None:
        self.conversations = [
            build(c) if c.id == convo_id else c for c in self.conversations
        ]

    def update_conversation(self, convo_id: str, **updates: Any) -> None:
        if "messages" in updates:
            updates["messages"] = [m.model_copy() for m in updates["messages"]]
        self._replace(convo_id, lambda c: c.model_copy(update=updates))

    def append_message(self, convo_id: str, message: ChatMessage) -> None:
        self._replace(
            convo_id,
            lambda c: c.model_copy(
                update={
                    "messages": [*c.messages, message.model_copy()],
                    "updated_at": datetime.now(timezone.utc),
                }
            ),
        )

    def replace_last_message_content(self, convo_id: str, content: str) -> None:
        def build(conversation: Conversation) -> Conversation:
            if not conversation.messages:
                return conversation
            last = conversation.messages[-1].model_copy(update={"content": content})
            return conversation.model_copy(
                update={"messages": [*conversation.messages[:-1], last]}
            )

        self._replace(convo_id, build)

    def set_selected_model(self, model: Model) -> None:
        self.selected_model = model

    def set_available_models(self, models: List[Model]) -> None:
        self.available_models = list(models)

    def set_streaming(self, streaming: bool) -> None:
        self.is_streaming = streaming

    def append_streaming_content(self, text: str) -> None:
        self.streaming_content += text

    def clear_streaming_content(self) -> None:
        self.streaming_content = ""

    def set_error(self, message: Optional[str]) -> None:
        self.error = message
