"""Persistence collaborator: collection-scoped document stores."""

from ideaflow.store.base import VERSION_KEY, DocumentStore
from ideaflow.store.memory import InMemoryDocumentStore

__all__ = ["VERSION_KEY", "DocumentStore", "InMemoryDocumentStore"]
