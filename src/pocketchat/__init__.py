"""
The main entrypoint for the PocketChat package.

This module contains the primary PocketChat class, which wires together the
extensible pillars defined in the sibling modules: the conversation store,
the key/value storage, the credential provider and the turn engine.
"""

import logging
from typing import List, Optional

from . import auth, engine, llm, store, storage
from .models import Model

logger = logging.getLogger(__name__)


class PocketChat:
    """
    The main class for the PocketChat chat client engine.

    This class acts as the central orchestrator, using the injected pillar
    components to manage the application's behavior. The constructor uses
    concrete default implementations, making it easy to get started while
    remaining fully customizable.
    """

    def __init__(
        self,
        store: Optional[store.Store] = None,
        storage: Optional[storage.Storage] = None,
        auth: Optional[auth.Auth] = None,
        engine: Optional[engine.Engine] = None,
    ) -> None:
        """
        Initialize the PocketChat application with configurable pillars.

        The application is meant to be constructed once at start-up and kept
        for the life of the process. Tests build a fresh instance each.

        Parameters
        ----------
        store : store.Store, optional
            Conversation store owning conversations, model selection and
            streaming state. Defaults to store.InMemory().
        storage : storage.Storage, optional
            Key/value persistence for conversations and credentials.
            Defaults to storage.InMemory() for session-only storage.
        auth : auth.Auth, optional
            Credential provider that decides which backend serves a turn.
            Defaults to auth.Anonymous() (hosted gateway, no token).
        engine : engine.Engine, optional
            Turn engine. Defaults to engine.Streaming(). The engine is bound
            to this application on construction.

        Examples
        --------
        Basic usage with defaults:

        >>> app = PocketChat()

        Persisted state and stored credentials:

        >>> from pocketchat import auth, storage
        >>> disk = storage.File("~/.pocketchat")
        >>> app = PocketChat(storage=disk, auth=auth.Stored(disk))
        >>> app.load()
        """
        store_module = globals()["store"]
        storage_module = globals()["storage"]
        auth_module = globals()["auth"]
        engine_module = globals()["engine"]

        self.store = store if store is not None else store_module.InMemory()
        self.storage = storage if storage is not None else storage_module.InMemory()
        self.auth = auth if auth is not None else auth_module.Anonymous()
        self.engine = engine if engine is not None else engine_module.Streaming()
        self.engine.app = self

    def load(self) -> None:
        """Restores saved conversations and credentials from storage."""
        if hasattr(self.auth, "hydrate"):
            self.auth.hydrate()
        conversations = storage.load_conversations(self.storage)
        self.store.set_conversations(conversations)
        logger.info(f"Loaded {len(conversations)} conversations")

    def save(self) -> None:
        """Writes the current conversation list to storage."""
        storage.save_conversations(self.storage, self.store.conversations)

    async def send_message(self, convo_id: str, text: str) -> bool:
        return await self.engine.send_message(convo_id, text)

    async def regenerate_last_response(self, convo_id: str) -> bool:
        return await self.engine.regenerate_last_response(convo_id)

    async def refresh_models(self) -> List[Model]:
        """Asks the current backend for its models and offers them for selection.

        The selected model is kept when the backend still offers it, otherwise
        the first offered model is selected.
        """
        select = getattr(self.engine, "select_llm", llm.select_llm)
        provider = select(self.auth.get_credentials())
        models = await provider.list_models()
        if not models:
            return []
        self.store.set_available_models(models)
        selected = self.store.selected_model
        if all(m.id != selected.id for m in models):
            self.store.set_selected_model(models[0])
        return models


__all__ = ["PocketChat", "auth", "engine", "llm", "store", "storage"]
