"""Concrete implementations for LLM providers (transport adapters)."""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator, Dict, List, Optional

import httpx

from . import config
from .models import (
    ASSISTANT_ROLE,
    DEFAULT_MODELS,
    ChatCompletion,
    Choice,
    CompletionMessage,
    Credentials,
    Model,
)

logger = logging.getLogger(__name__)

STREAM_PREFIX = "data: "
STREAM_DONE = "[DONE]"


class TransportError(Exception):
    """Raised when a backend answers with a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LLM(ABC):
    """Abstract Base Class for all LLM providers."""

    #: Whether the engine should consume ``stream_chat`` instead of ``chat``.
    streaming: bool = False

    @abstractmethod
    async def chat(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> Any:
        """Generates a complete response from the LLM provider.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            Ordered ``{"role", "content"}`` dictionaries, oldest first.
        model : str, optional
            The specific model to use for the generation.
        **kwargs : Any
            Provider-specific parameters passed through to the backend.

        Returns
        -------
        Any
            The provider's response object, in the OpenAI-compatible
            ``choices[0].message.content`` shape.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> str:
        """Extracts the text content from the provider's response object.

        Parameters
        ----------
        response : Any
            The provider's native response object from chat.

        Returns
        -------
        str
            The extracted text content from the response.
        """
        pass

    def stream_chat(
        self, messages: List[Dict[str, Any]], model: Optional[str] = None, **kwargs: Any
    ) -> AsyncIterator[str]:
        """Generates a response as a lazy sequence of text fragments.

        The sequence is finite and cannot be restarted. It ends on the
        backend's end-of-stream marker, or raises when the connection fails.
        """
        raise NotImplementedError(f"{type(self).__name__} does not stream")

    async def list_models(self) -> List[Model]:
        """Returns the models this provider can serve."""
        return list(DEFAULT_MODELS)


async def iter_fragments(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Turns a line-delimited event stream into text fragments.

    Only lines prefixed with ``data: `` are considered. The literal ``[DONE]``
    payload ends the stream, payloads that are not valid JSON are skipped, and
    ``choices[0].delta.content`` is yielded whenever it is non-empty.
    """
    async for line in lines:
        if not line.startswith(STREAM_PREFIX):
            continue
        data = line[len(STREAM_PREFIX) :].strip()
        if data == STREAM_DONE:
            return
        try:
            payload = json.loads(data)
            content = payload["choices"][0]["delta"].get("content")
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            logger.debug(f"Skipping unparseable stream line: {line!r}")
            continue
        if content:
            yield content


def get_driver_for_model(model: str) -> str:
    """Maps a model id to the Puter driver that serves it."""
    if "claude" in model:
        return "claude"
    if "gpt" in model:
        return "openai-completion"
    if "gemini" in model:
        return "google-ai"
    if "deepseek" in model:
        return "deepseek"
    return "openai-completion"


class Puter(LLM):
    """The hosted multi-model gateway. Streams by default."""

    streaming = True

    def __init__(
        self,
        token: Optional[str] = None,
        default_model: str = "gpt-4o",
        base_url: str = config.PUTER_API_BASE,
        timeout: float = config.REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.model = default_model
        self.base_url = base_url
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    def _payload(self, messages, model, stream: bool) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "messages": [
                {"role": m["role"], "content": m["content"]} for m in messages
            ]
        }
        if stream:
            args["stream"] = True
        return {
            "interface": "puter-chat-completion",
            "driver": get_driver_for_model(model),
            "method": "complete",
            "args": args,
        }

    async def chat(self, messages, model=None, **kwargs):
        model = model or self.model
        async with self._client() as client:
            response = await client.post(
                "/drivers/call", json=self._payload(messages, model, stream=False)
            )
            if not response.is_success:
                raise TransportError(
                    f"Puter API error: {response.status_code}", response.status_code
                )
            data = response.json()

        nested = (data.get("result") or {}).get("message") or {}
        content = (data.get("message") or {}).get("content") or nested.get("content") or ""
        return ChatCompletion(
            id=data.get("id") or f"puter-{int(time.time() * 1000)}",
            choices=[
                Choice(
                    message=CompletionMessage(role=ASSISTANT_ROLE, content=content),
                    finish_reason="stop",
                )
            ],
            model=model,
        )

    def extract_content(self, response: Any) -> str:
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream_chat(self, messages, model=None, **kwargs):
        model = model or self.model
        async with self._client() as client:
            async with client.stream(
                "POST", "/drivers/call", json=self._payload(messages, model, stream=True)
            ) as response:
                if not response.is_success:
                    raise TransportError(
                        f"Puter API error: {response.status_code}",
                        response.status_code,
                    )
                async for fragment in iter_fragments(response.aiter_lines()):
                    yield fragment


class OpenWebUI(LLM):
    """A self-hosted Open WebUI server, reached through its OpenAI-compatible API."""

    def __init__(
        self,
        server_url: str,
        token: str,
        default_model: str = "gpt-4o",
        timeout: float = config.REQUEST_TIMEOUT,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        from openai import AsyncOpenAI

        self.server_url = server_url.rstrip("/")
        self.client = AsyncOpenAI(
            base_url=f"{self.server_url}/api",
            api_key=token,
            timeout=timeout,
            http_client=http_client,
        )
        self.model = default_model

    async def chat(self, messages, model=None, **kwargs):
        return await self.client.chat.completions.create(
            model=model or self.model,
            messages=[{"role": m["role"], "content": m["content"]} for m in messages],
            stream=False,
            **kwargs,
        )

    def extract_content(self, response: Any) -> str:
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def list_models(self) -> List[Model]:
        page = await self.client.models.list()
        return [
            Model(
                id=m.id,
                name=getattr(m, "name", None) or m.id,
                owned_by=getattr(m, "owned_by", None),
            )
            for m in page.data
        ]


class Echo(LLM):
    """Streams the last user prompt back, word by word. No network."""

    streaming = True

    def __init__(self, default_model: str = "echo-v1", delay: float = 0.0):
        self.model = default_model
        self.delay = delay

    def _reply(self, messages) -> str:
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        return f"Echo: {user_prompt}"

    async def chat(self, messages, model=None, **kwargs):
        await asyncio.sleep(self.delay)
        return ChatCompletion(
            choices=[Choice(message=CompletionMessage(content=self._reply(messages)))],
            model=model or self.model,
        )

    def extract_content(self, response: Any) -> str:
        return response.choices[0].message.content or ""

    async def stream_chat(self, messages, model=None, **kwargs):
        words = self._reply(messages).split(" ")
        for i, word in enumerate(words):
            await asyncio.sleep(self.delay)
            yield word if i == 0 else f" {word}"

    async def list_models(self) -> List[Model]:
        return [Model(id=self.model, name="Echo", owned_by="pocketchat")]


def select_llm(credentials: Credentials) -> LLM:
    """Picks the transport for one turn from the current credentials.

    Open WebUI is used only when it is authenticated and both a server URL
    and a token are present; every other case falls back to Puter.
    """
    if (
        credentials.is_open_webui_authenticated
        and credentials.server_url
        and credentials.open_webui_token
    ):
        return OpenWebUI(credentials.server_url, credentials.open_webui_token)
    return Puter(token=credentials.puter_token)
