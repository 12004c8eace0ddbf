"""
Engines that run a chat turn against the application's pillars.

An engine takes the user's text, records it in the store, picks a transport
for the turn, and folds the reply back into the conversation as it arrives.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, List, Optional

from . import config
from .llm import LLM, TransportError, select_llm
from .models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, Credentials

if TYPE_CHECKING:
    from . import PocketChat

logger = logging.getLogger(__name__)


def derive_title(text: str) -> str:
    """Builds a conversation title from the first user message."""
    text = text.strip()
    if len(text) > config.TITLE_MAX_LENGTH:
        return text[: config.TITLE_MAX_LENGTH] + config.TITLE_ELLIPSIS
    return text


class Engine(ABC):
    """Interface for running chat turns."""

    def __init__(self, app: Optional["PocketChat"] = None):
        """Initialize the engine, optionally bound to an application.

        Parameters
        ----------
        app : PocketChat, optional
            The application whose ``store`` and ``auth`` pillars the engine
            drives. It can also be bound later by assigning ``engine.app``.
        """
        self.app = app

    @abstractmethod
    async def send_message(self, convo_id: str, text: str) -> bool:
        """Runs one turn. Returns False when the call was ignored."""
        pass

    @abstractmethod
    async def regenerate_last_response(self, convo_id: str) -> bool:
        """Re-issues the latest user message. Returns False when ignored."""
        pass


class Streaming(Engine):
    """Runs one turn at a time and applies streamed fragments as they arrive.

    The store's streaming flag is process-wide, so while any turn is in
    flight every other send is ignored, whichever conversation it targets.
    A turn has no deadline of its own; each HTTP request made by a transport
    is bounded by ``config.REQUEST_TIMEOUT``.
    """

    def __init__(
        self,
        app: Optional["PocketChat"] = None,
        select_llm: Callable[[Credentials], LLM] = select_llm,
    ):
        super().__init__(app)
        self.select_llm = select_llm

    async def send_message(self, convo_id: str, text: str) -> bool:
        store = self.app.store
        conversation = store.get_conversation(convo_id)
        if conversation is None:
            logger.warning(f"Ignoring message for unknown conversation {convo_id}")
            return False
        return await self._send(
            convo_id, text, retitle=not conversation.messages
        )

    async def regenerate_last_response(self, convo_id: str) -> bool:
        store = self.app.store
        conversation = store.get_conversation(convo_id)
        if conversation is None or store.is_streaming:
            return False
        messages = conversation.messages
        if len(messages) < 2:
            return False

        index = next(
            (i for i in range(len(messages) - 1, -1, -1) if messages[i].role == USER_ROLE),
            None,
        )
        if index is None:
            return False

        history = messages[: index + 1]
        store.set_error(None)
        store.update_conversation(convo_id, messages=history)
        await self._respond(convo_id, history)
        return True

    async def _send(self, convo_id: str, text: str, retitle: bool) -> bool:
        store = self.app.store
        content = (text or "").strip()
        if not content:
            logger.debug("Ignoring empty message")
            return False
        if store.is_streaming:
            logger.debug("Ignoring message while a response is streaming")
            return False

        conversation = store.get_conversation(convo_id)
        history = list(conversation.messages) if conversation else []

        store.set_error(None)
        user_message = ChatMessage(role=USER_ROLE, content=content)
        store.append_message(convo_id, user_message)
        if retitle:
            store.update_conversation(convo_id, title=derive_title(content))

        await self._respond(convo_id, [*history, user_message])
        return True

    async def _respond(self, convo_id: str, history: List[ChatMessage]) -> None:
        """Streams a reply to ``history`` into a fresh assistant placeholder.

        Failures end up as the failure text in the placeholder and, except
        for cancellation, as the store's error. The streaming flag is cleared
        and the conversations are saved however the turn ends.
        """
        store = self.app.store
        model_id = store.selected_model.id
        store.append_message(convo_id, ChatMessage(role=ASSISTANT_ROLE, model=model_id))
        store.set_streaming(True)
        store.clear_streaming_content()

        messages = [m.to_wire() for m in history]
        try:
            llm = self.select_llm(self.app.auth.get_credentials())
            logger.info(
                f"Sending turn to {type(llm).__name__} with model {model_id} "
                f"({len(messages)} messages)"
            )
            if llm.streaming:
                reply = ""
                async for fragment in llm.stream_chat(messages, model=model_id):
                    reply += fragment
                    store.append_streaming_content(fragment)
                    store.replace_last_message_content(convo_id, reply)
            else:
                response = await llm.chat(messages, model=model_id)
                reply = llm.extract_content(response)
                store.replace_last_message_content(convo_id, reply)
            if not reply:
                raise TransportError("The model returned an empty response")
        except asyncio.CancelledError:
            store.replace_last_message_content(convo_id, config.FAILURE_MESSAGE)
            raise
        except Exception as e:
            logger.exception(f"Chat error in conversation {convo_id}")
            store.set_error(str(e) or "An error occurred")
            store.replace_last_message_content(convo_id, config.FAILURE_MESSAGE)
        finally:
            store.set_streaming(False)
            store.clear_streaming_content()
            self.app.save()
