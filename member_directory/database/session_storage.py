"""
Auth token storage that honours the member's "remember me" choice.

The Supabase client persists its session through a storage object exposing
get_item / set_item / remove_item. Each member gets their own storage under
``settings.session_storage_dir``. When the member asked to be remembered the
token goes to a file there and survives a restart; otherwise it is only held
in memory and never written to disk.
"""

import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

REMEMBER_ME_FILE = "remember_me"
TOKENS_FILE = "session.json"


class RememberMePreference:
    """Single boolean preference; absent means remembered."""

    def __init__(self, directory: Union[str, Path]):
        self.path = Path(directory) / REMEMBER_ME_FILE

    def get(self) -> bool:
        try:
            return self.path.read_text().strip() != "false"
        except FileNotFoundError:
            return True

    def set(self, remember: bool) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("true" if remember else "false")


class MemoryStorage:
    """Session-scoped store; forgotten when the process exits."""

    def __init__(self):
        self._items: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def clear(self) -> None:
        self._items.clear()


class FileStorage:
    """Durable store backed by a small JSON document."""

    def __init__(self, directory: Union[str, Path]):
        self.path = Path(directory) / TOKENS_FILE
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        try:
            return json.loads(self.path.read_text())
        except FileNotFoundError:
            return {}
        except ValueError:
            logger.warning(f"Discarding unreadable session file {self.path}")
            return {}

    def _write(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(items))

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            items = self._read()
            items[key] = value
            self._write(items)

    def remove_item(self, key: str) -> None:
        with self._lock:
            items = self._read()
            if key in items:
                del items[key]
                self._write(items)

    def clear(self) -> None:
        with self._lock:
            self.path.unlink(missing_ok=True)


class PreferenceAwareStorage:
    """Routes each read/write by the current remember-me preference."""

    def __init__(self, directory: Union[str, Path]):
        self.preference = RememberMePreference(directory)
        self.durable = FileStorage(directory)
        self.session = MemoryStorage()

    def _active(self):
        return self.durable if self.preference.get() else self.session

    def get_item(self, key: str) -> Optional[str]:
        return self._active().get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._active().set_item(key, value)

    def remove_item(self, key: str) -> None:
        # Sign-out must not leave a token behind in either store
        self.durable.remove_item(key)
        self.session.remove_item(key)

    def clear(self) -> None:
        """Forget every stored token; the remember-me choice is kept"""
        self.durable.clear()
        self.session.clear()


def member_storage(root: Union[str, Path], email: str) -> PreferenceAwareStorage:
    """Storage private to one member, in a directory named after their email's digest"""
    digest = hashlib.sha256(email.strip().casefold().encode()).hexdigest()
    return PreferenceAwareStorage(Path(root) / digest[:32])
