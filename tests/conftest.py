"""
Core pytest configuration and fixtures for PocketChat testing.

This module provides shared test fixtures, fake transports and utilities
that support the pillar-based testing architecture.
"""

import asyncio
from typing import List

import pytest
from pocketchat import PocketChat
from pocketchat.auth import Static
from pocketchat.llm import LLM
from pocketchat.models import (
    ASSISTANT_ROLE,
    DEFAULT_TITLE,
    USER_ROLE,
    ChatCompletion,
    ChatMessage,
    Choice,
    CompletionMessage,
    Conversation,
)
from pocketchat.store import InMemory, Store

# ===== FAKE TRANSPORTS =====


class FakeStreamingLLM(LLM):
    """Yields a fixed list of fragments, optionally failing part way."""

    streaming = True

    def __init__(self, fragments=None, error=None, fail_after=None, gate=None):
        self.fragments = list(fragments or [])
        self.error = error
        self.fail_after = fail_after
        self.gate = gate
        self.calls = []

    async def chat(self, messages, model=None, **kwargs):
        raise AssertionError("streaming adapter should not be asked for chat")

    def extract_content(self, response):
        return ""

    async def stream_chat(self, messages, model=None, **kwargs):
        self.calls.append({"messages": messages, "model": model})
        for i, fragment in enumerate(self.fragments):
            if self.fail_after is not None and i == self.fail_after:
                raise self.error
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(0)
            yield fragment
        if self.error is not None and self.fail_after is None:
            raise self.error


class FakeChatLLM(LLM):
    """Returns one complete response in the OpenAI-compatible shape."""

    def __init__(self, content="", error=None):
        self.content = content
        self.error = error
        self.calls = []

    async def chat(self, messages, model=None, **kwargs):
        self.calls.append({"messages": messages, "model": model})
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return {"choices": [{"message": {"content": self.content}}], "model": model}

    def extract_content(self, response):
        return response["choices"][0]["message"]["content"]


class RecordingStore(InMemory):
    """An in-memory store that records every last-message write."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.writes: List[str] = []

    def replace_last_message_content(self, convo_id, content):
        self.writes.append(content)
        super().replace_last_message_content(convo_id, content)


class KeyedStore(Store):
    """A store that keeps conversations in a dict keyed by id."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._by_id = {}
        self._order = []

    def _sync(self):
        self.conversations = [self._by_id[i] for i in self._order]

    def create_conversation(self, title=None):
        conversation = Conversation(
            title=title or DEFAULT_TITLE, model=self.selected_model.id
        )
        self._by_id[conversation.id] = conversation
        self._order.insert(0, conversation.id)
        self._sync()
        self.current_conversation_id = conversation.id
        return conversation

    def select_conversation(self, convo_id):
        self.current_conversation_id = convo_id

    def delete_conversation(self, convo_id):
        if self._by_id.pop(convo_id, None) is not None:
            self._order.remove(convo_id)
            self._sync()
        if self.current_conversation_id == convo_id:
            self.current_conversation_id = None

    def get_conversation(self, convo_id):
        return self._by_id.get(convo_id)

    def set_conversations(self, conversations):
        self._by_id = {c.id: c for c in conversations}
        self._order = [c.id for c in conversations]
        self._sync()

    def update_conversation(self, convo_id, **updates):
        if convo_id in self._by_id:
            self._by_id[convo_id] = self._by_id[convo_id].model_copy(update=updates)
            self._sync()

    def append_message(self, convo_id, message):
        conversation = self._by_id.get(convo_id)
        if conversation is not None:
            self.update_conversation(
                convo_id, messages=[*conversation.messages, message]
            )

    def replace_last_message_content(self, convo_id, content):
        conversation = self._by_id.get(convo_id)
        if conversation is not None and conversation.messages:
            last = conversation.messages[-1].model_copy(update={"content": content})
            self.update_conversation(
                convo_id, messages=[*conversation.messages[:-1], last]
            )

    def set_selected_model(self, model):
        self.selected_model = model

    def set_available_models(self, models):
        self.available_models = list(models)

    def set_streaming(self, streaming):
        self.is_streaming = streaming

    def append_streaming_content(self, text):
        self.streaming_content += text

    def clear_streaming_content(self):
        self.streaming_content = ""

    def set_error(self, message):
        self.error = message


# ===== TEST DATA FIXTURES =====


@pytest.fixture
def sample_messages() -> List[ChatMessage]:
    """Sample chat messages for testing."""
    return [
        ChatMessage(role=USER_ROLE, content="Hello, how are you?"),
        ChatMessage(
            role=ASSISTANT_ROLE,
            content="I'm doing well, thank you! How can I help you today?",
            model="gpt-4o",
        ),
        ChatMessage(role=USER_ROLE, content="Can you explain quantum computing?"),
        ChatMessage(
            role=ASSISTANT_ROLE,
            content="Quantum computing uses quantum mechanics principles...",
            model="gpt-4o",
        ),
    ]


@pytest.fixture
def sample_conversation(sample_messages) -> Conversation:
    """Sample conversation for testing."""
    return Conversation(
        id="001", title="Hello, how are you?", messages=sample_messages, model="gpt-4o"
    )


@pytest.fixture
def sample_completion() -> ChatCompletion:
    return ChatCompletion(
        choices=[Choice(message=CompletionMessage(content="pong"))], model="m"
    )


# ===== FAKE TRANSPORT FIXTURES =====


@pytest.fixture
def streaming_llm():
    """The fake streaming transport class."""
    return FakeStreamingLLM


@pytest.fixture
def chat_llm():
    """The fake non-streaming transport class."""
    return FakeChatLLM


@pytest.fixture
def keyed_store():
    """A Store implementation that does not build on InMemory."""
    return KeyedStore


# ===== APP FIXTURES =====


@pytest.fixture
def make_app():
    """Builds an app whose engine always uses the given transport."""

    def _make(llm, store=None, **kwargs):
        app = PocketChat(store=store or RecordingStore(), **kwargs)
        app.engine.select_llm = lambda credentials: llm
        return app

    return _make


@pytest.fixture
def open_webui_auth():
    return Static(
        server_url="http://localhost:8080",
        open_webui_token="owui-token",
        is_open_webui_authenticated=True,
    )


# ===== CONFIGURATION =====


def pytest_configure(config):
    """Pytest configuration."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
