"""Concrete implementations for credential providers."""

from abc import ABC, abstractmethod
from typing import Optional

from . import config
from .models import Credentials
from .storage import Storage


class Auth(ABC):
    """Interface for reading the current tokens and server settings."""

    @abstractmethod
    def get_credentials(self) -> Credentials:
        """Returns a read-only snapshot of the current credentials."""
        pass


class Anonymous(Auth):
    """No tokens at all. Turns go to the hosted gateway unauthenticated."""

    def get_credentials(self) -> Credentials:
        return Credentials()


class Static(Auth):
    """A fixed set of credentials, handy for scripts and tests."""

    def __init__(self, credentials: Optional[Credentials] = None, **kwargs):
        """Initialize with a snapshot or with its fields.

        Parameters
        ----------
        credentials : Credentials, optional
            The snapshot to return. When omitted, one is built from ``kwargs``.
        """
        self._credentials = credentials or Credentials(**kwargs)

    def get_credentials(self) -> Credentials:
        return self._credentials


class Stored(Auth):
    """Credentials kept in a key/value storage.

    Call ``hydrate`` once at start-up to read what earlier sessions saved.
    Setters write through to the storage before updating the snapshot.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self._credentials = Credentials()

    def hydrate(self) -> Credentials:
        puter_token = self.storage.get(config.PUTER_TOKEN_KEY)
        open_webui_token = self.storage.get(config.OPEN_WEBUI_TOKEN_KEY)
        self._credentials = Credentials(
            puter_token=puter_token,
            open_webui_token=open_webui_token,
            server_url=self.storage.get(config.SERVER_URL_KEY),
            is_open_webui_authenticated=bool(open_webui_token),
        )
        return self._credentials

    def get_credentials(self) -> Credentials:
        return self._credentials

    def _update(self, **updates) -> None:
        self._credentials = self._credentials.model_copy(update=updates)

    def set_puter_token(self, token: str) -> None:
        self.storage.set(config.PUTER_TOKEN_KEY, token)
        self._update(puter_token=token)

    def clear_puter_auth(self) -> None:
        self.storage.delete(config.PUTER_TOKEN_KEY)
        self._update(puter_token=None)

    def set_open_webui_token(self, token: str) -> None:
        self.storage.set(config.OPEN_WEBUI_TOKEN_KEY, token)
        self._update(open_webui_token=token, is_open_webui_authenticated=True)

    def clear_open_webui_auth(self) -> None:
        self.storage.delete(config.OPEN_WEBUI_TOKEN_KEY)
        self._update(open_webui_token=None, is_open_webui_authenticated=False)

    def set_server_url(self, url: str) -> None:
        self.storage.set(config.SERVER_URL_KEY, url)
        self._update(server_url=url)

    def clear_server_url(self) -> None:
        self.storage.delete(config.SERVER_URL_KEY)
        self._update(server_url=None)
