"""In-process document store (tests, development, single-process deployments)."""

from __future__ import annotations

import copy
import threading

from ideaflow.core.exceptions import StaleWriteError
from ideaflow.store.base import VERSION_KEY, DocumentStore, matches, strip_version


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dict-of-dicts store with versioned writes.

    Documents are deep-copied on the way in and out, so callers can never
    mutate stored state by holding on to a returned dict.
    """

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()
        self._data: dict[str, dict[str, tuple[int, dict]]] = {}

    def get(self, collection: str, doc_id: str) -> dict | None:
        with self._lock:
            entry = self._data.get(collection, {}).get(doc_id)
            if entry is None:
                return None
            version, body = entry
            return {**copy.deepcopy(body), VERSION_KEY: version}

    def list(self, collection: str, filters: dict | None = None) -> list[dict]:
        with self._lock:
            docs = [
                {**copy.deepcopy(body), VERSION_KEY: version}
                for version, body in self._data.get(collection, {}).values()
            ]
        return [d for d in docs if matches(d, filters)]

    def put(self, collection: str, doc_id: str, doc: dict, expected_version: int | None = None) -> int:
        with self._lock:
            bucket = self._data.setdefault(collection, {})
            current = bucket.get(doc_id)
            current_version = current[0] if current else 0
            if expected_version is not None and expected_version != current_version:
                raise StaleWriteError(collection, doc_id, expected_version, current_version or None)
            new_version = current_version + 1
            bucket[doc_id] = (new_version, copy.deepcopy(strip_version(doc)))
        self._notify(collection)
        return new_version

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            existed = self._data.get(collection, {}).pop(doc_id, None) is not None
        if existed:
            self._notify(collection)
        return existed

    def clear(self) -> None:
        """Drop every collection (test helper). Subscribers are not notified."""
        with self._lock:
            self._data.clear()
