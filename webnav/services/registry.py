import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
from uuid import uuid4

from webnav.services.navigator import Navigator
from webnav.services.storage import SqlPropertyStore
from webnav.services.transport import HttpxTransport, Transport


@dataclass
class NavigatorEntry:
    navigator: Navigator
    lock: threading.Lock = field(default_factory=threading.Lock)


class NavigatorRegistry:
    """Navigators created through the API, one per site/account.

    Navigators that persist cookies share one property store.
    """

    def __init__(self, transport_factory: Optional[Callable[[], Transport]] = None):
        self._entries: Dict[str, NavigatorEntry] = {}
        self._lock = threading.Lock()
        self._store: Optional[SqlPropertyStore] = None
        self.transport_factory = transport_factory or HttpxTransport

    def _property_store(self) -> SqlPropertyStore:
        with self._lock:
            if self._store is None:
                self._store = SqlPropertyStore()
            return self._store

    def create(self, **config) -> str:
        store = self._property_store() if config.get("persist_cookies") else None
        navigator = Navigator(transport=self.transport_factory(), store=store, **config)
        navigator_id = str(uuid4())
        with self._lock:
            self._entries[navigator_id] = NavigatorEntry(navigator=navigator)
        return navigator_id

    def get(self, navigator_id: str) -> NavigatorEntry:
        with self._lock:
            entry = self._entries.get(navigator_id)
        if entry is None:
            raise KeyError(navigator_id)
        return entry

    def remove(self, navigator_id: str) -> None:
        with self._lock:
            entry = self._entries.pop(navigator_id, None)
        if entry is None:
            raise KeyError(navigator_id)
        close = getattr(entry.navigator.transport, "close", None)
        if callable(close):
            close()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            store, self._store = self._store, None
        if store is not None:
            store.close()


navigator_registry = NavigatorRegistry()
