"""
Live idea feed.

Holds the current snapshot of the ``ideas`` collection, kept fresh by the
store's push subscription. One feed per process (the app factory owns it);
``start()`` subscribes and loads, ``close()`` unsubscribes. UI bindings
register their own callbacks with ``subscribe()`` and get the sorted list
after every change.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from ideaflow.models.idea import IDEAS_COLLECTION, Idea
from ideaflow.services.idea_queries import sort_newest_first
from ideaflow.store.base import DocumentStore

logger = logging.getLogger(__name__)

FeedListener = Callable[[list[Idea]], None]


class IdeaFeed:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._lock = threading.Lock()
        self._ideas: list[Idea] = []
        self._listeners: list[FeedListener] = []
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def started(self) -> bool:
        return self._unsubscribe is not None

    @property
    def ideas(self) -> list[Idea]:
        """Snapshot, newest first. The returned list is the caller's to keep."""
        with self._lock:
            return list(self._ideas)

    def start(self) -> IdeaFeed:
        if self.started:
            return self
        self._unsubscribe = self.store.subscribe(IDEAS_COLLECTION, self._on_change)
        self._on_change(self.store.list(IDEAS_COLLECTION))
        logger.info("Idea feed started", extra={"ideas": len(self._ideas)})
        return self

    def close(self) -> None:
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        logger.info("Idea feed closed")

    def subscribe(self, listener: FeedListener) -> Callable[[], None]:
        """Call ``listener`` with the sorted ideas after every change."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _on_change(self, docs: list[dict]) -> None:
        ideas = sort_newest_first(Idea.from_document(d) for d in docs)
        with self._lock:
            self._ideas = ideas
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(list(ideas))
            except Exception:
                logger.exception("Idea feed listener failed")

    def __enter__(self) -> IdeaFeed:
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()
