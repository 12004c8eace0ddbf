"""Concrete implementations for key/value persistence."""

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from . import config
from .models import Conversation

logger = logging.getLogger(__name__)

_conversation_list = TypeAdapter(List[Conversation])


class Storage(ABC):
    """Interface for storing string values by key."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Returns the value stored under ``key``, or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Stores ``value`` under ``key``, replacing any previous value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Removes ``key``. Deleting a missing key does nothing."""
        pass


class InMemory(Storage):
    """Stores values in a dictionary for the life of the process."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class File(Storage):
    """Stores each key as a file inside ``base_dir``."""

    def __init__(self, base_dir: Union[str, Path] = config.DATA_DIR):
        self.base_dir = Path(base_dir).expanduser()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not re.fullmatch(r"[A-Za-z0-9_.-]+", key) or key in (".", ".."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.base_dir / key

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def load_conversations(storage: Storage) -> List[Conversation]:
    """Reads the saved conversation list.

    Dates are stored as ISO strings; validation turns them back into
    ``datetime`` values. Missing data gives an empty list, and so does data
    that cannot be parsed, after logging the problem.
    """
    data = storage.get(config.CONVERSATIONS_KEY)
    if not data:
        return []
    try:
        return _conversation_list.validate_json(data)
    except ValidationError:
        logger.exception("Error loading conversations")
        return []


def save_conversations(storage: Storage, conversations: List[Conversation]) -> None:
    """Writes the conversation list. Failures are logged, not raised."""
    try:
        storage.set(
            config.CONVERSATIONS_KEY,
            _conversation_list.dump_json(conversations).decode("utf-8"),
        )
    except Exception:
        logger.exception("Error saving conversations")
