"""
Document store contract.

The pipeline only ever talks to a collection-scoped key/value document store:

    get(collection, doc_id)            -> dict | None
    list(collection, filters=None)     -> list[dict]
    put(collection, doc_id, doc, expected_version=None) -> int
    delete(collection, doc_id)         -> bool
    subscribe(collection, callback)    -> unsubscribe()

Every stored document carries a version counter, returned under
``VERSION_KEY``. ``put`` with ``expected_version`` is a compare-and-swap:
``0`` means "must not exist yet", ``n`` means "must still be at version n";
a mismatch raises StaleWriteError. ``expected_version=None`` is an
unconditional write.

Subscribers receive the full current collection after every committed
change to it.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable

logger = logging.getLogger(__name__)

VERSION_KEY = "_version"

Subscriber = Callable[[list[dict]], None]


def matches(doc: dict, filters: dict | None) -> bool:
    """Equality match of top-level fields."""
    if not filters:
        return True
    return all(doc.get(key) == value for key, value in filters.items())


def strip_version(doc: dict) -> dict:
    return {k: v for k, v in doc.items() if k != VERSION_KEY}


class DocumentStore(ABC):
    """Base class: subscription bookkeeping shared by every backend."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Subscriber]] = {}
        self._listeners_lock = threading.Lock()

    # ── Contract ─────────────────────────────────────────────────────────

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        ...

    @abstractmethod
    def list(self, collection: str, filters: dict | None = None) -> list[dict]:
        ...

    @abstractmethod
    def put(self, collection: str, doc_id: str, doc: dict, expected_version: int | None = None) -> int:
        ...

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        ...

    # ── Subscriptions ────────────────────────────────────────────────────

    def subscribe(self, collection: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for changes to ``collection``.

        Returns a function that removes the subscription. Calling it more
        than once is harmless.
        """
        with self._listeners_lock:
            self._listeners.setdefault(collection, []).append(callback)

        def unsubscribe() -> None:
            with self._listeners_lock:
                callbacks = self._listeners.get(collection, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def subscriber_count(self, collection: str) -> int:
        with self._listeners_lock:
            return len(self._listeners.get(collection, []))

    def _notify(self, collection: str) -> None:
        """Push the current collection snapshot to its subscribers."""
        with self._listeners_lock:
            callbacks = list(self._listeners.get(collection, []))
        if not callbacks:
            return
        snapshot = self.list(collection)
        for callback in callbacks:
            try:
                callback(snapshot)
            except Exception:
                # The write is already committed; one broken listener must
                # not hide the change from the others.
                logger.exception("Subscriber failed for collection=%s", collection)
