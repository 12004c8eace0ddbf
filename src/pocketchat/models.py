"""
Defines the core Pydantic data models for the application.

These models serve as the formal, validated data contract between all other pillars,
aligning with conventions from industry-standard libraries like the OpenAI SDK.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE]

DEFAULT_TITLE = "New Chat"


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Models ---
class ChatMessage(BaseModel):
    """Represents a single message within a conversation."""

    role: Role
    content: str = ""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=_now)
    model: Optional[str] = None

    def to_wire(self) -> Dict[str, str]:
        """The ``{role, content}`` pair sent to a backend."""
        return {"role": self.role, "content": self.content}


class Conversation(BaseModel):
    """Represents a complete chat conversation session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str = DEFAULT_TITLE
    messages: List[ChatMessage] = Field(default_factory=list)
    model: str = ""
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class Model(BaseModel):
    """A selectable backend target."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    owned_by: Optional[str] = None
    description: Optional[str] = None
    capabilities: Optional[List[str]] = None


class Credentials(BaseModel):
    """Read-only snapshot of the tokens and server settings."""

    model_config = ConfigDict(frozen=True)

    puter_token: Optional[str] = None
    open_webui_token: Optional[str] = None
    server_url: Optional[str] = None
    is_open_webui_authenticated: bool = False

    @property
    def is_puter_authenticated(self) -> bool:
        return bool(self.puter_token)


class CompletionMessage(BaseModel):
    role: str = ASSISTANT_ROLE
    content: Optional[str] = ""


class Choice(BaseModel):
    message: CompletionMessage
    finish_reason: Optional[str] = None


class ChatCompletion(BaseModel):
    """A non-streaming chat response in the OpenAI-compatible shape."""

    id: str = Field(default_factory=lambda: f"chatcmpl-{uuid.uuid4().hex}")
    choices: List[Choice] = Field(default_factory=list)
    model: str = ""
    usage: Optional[Dict[str, Any]] = None


DEFAULT_MODELS: List[Model] = [
    Model(
        id="gpt-4o",
        name="GPT-4o",
        owned_by="openai",
        description="Most capable OpenAI model",
    ),
    Model(
        id="gpt-4o-mini",
        name="GPT-4o Mini",
        owned_by="openai",
        description="Faster, more affordable GPT-4",
    ),
    Model(
        id="claude-3-5-sonnet",
        name="Claude 3.5 Sonnet",
        owned_by="anthropic",
        description="Balanced performance and speed",
    ),
    Model(
        id="claude-3-5-haiku",
        name="Claude 3.5 Haiku",
        owned_by="anthropic",
        description="Fast and efficient",
    ),
    Model(
        id="gemini-2.0-flash",
        name="Gemini 2.0 Flash",
        owned_by="google",
        description="Google's latest fast model",
    ),
    Model(
        id="deepseek-chat",
        name="DeepSeek Chat",
        owned_by="deepseek",
        description="General conversation model",
    ),
    Model(
        id="deepseek-reasoner",
        name="DeepSeek Reasoner",
        owned_by="deepseek",
        description="Enhanced reasoning capabilities",
    ),
]
