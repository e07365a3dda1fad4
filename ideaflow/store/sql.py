"""
SQL document store on top of Flask-SQLAlchemy.

Each document is one row of ``documents`` (see ideaflow.models.document).
Compare-and-swap writes are a conditional ``UPDATE ... WHERE version = :n``
so the check and the write are a single statement at the database.

Must be used inside a Flask application context. Subscriptions are
in-process: listeners see writes made through this store object only.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from ideaflow.core.exceptions import StaleWriteError, StoreUnavailableError
from ideaflow.models import db
from ideaflow.models.document import Document
from ideaflow.store.base import VERSION_KEY, DocumentStore, matches, strip_version

logger = logging.getLogger(__name__)


class SqlDocumentStore(DocumentStore):

    def _load(self, collection: str, doc_id: str) -> Document | None:
        return db.session.execute(
            select(Document)
            .where(Document.collection == collection, Document.doc_id == doc_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get(self, collection: str, doc_id: str) -> dict | None:
        try:
            row = self._load(collection, doc_id)
        except OperationalError as exc:
            db.session.rollback()
            raise StoreUnavailableError(f"Document store unavailable: {exc.orig}") from exc
        if row is None:
            return None
        return {**(row.body or {}), VERSION_KEY: row.version}

    def list(self, collection: str, filters: dict | None = None) -> list[dict]:
        try:
            rows = db.session.execute(
                select(Document)
                .where(Document.collection == collection)
                .order_by(Document.id)
                .execution_options(populate_existing=True)
            ).scalars().all()
        except OperationalError as exc:
            db.session.rollback()
            raise StoreUnavailableError(f"Document store unavailable: {exc.orig}") from exc
        docs = [{**(row.body or {}), VERSION_KEY: row.version} for row in rows]
        return [d for d in docs if matches(d, filters)]

    def put(self, collection: str, doc_id: str, doc: dict, expected_version: int | None = None) -> int:
        body = strip_version(doc)
        try:
            if expected_version is None:
                new_version = self._upsert(collection, doc_id, body)
            elif expected_version == 0:
                new_version = self._insert(collection, doc_id, body)
            else:
                new_version = self._swap(collection, doc_id, body, expected_version)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            logger.warning("Concurrent create of %s/%s", collection, doc_id)
            raise StaleWriteError(collection, doc_id, expected_version, None) from exc
        except OperationalError as exc:
            db.session.rollback()
            logger.exception("Document store write failed for %s/%s", collection, doc_id)
            raise StoreUnavailableError(f"Document store unavailable: {exc.orig}") from exc
        except StaleWriteError:
            db.session.rollback()
            raise

        self._notify(collection)
        return new_version

    def delete(self, collection: str, doc_id: str) -> bool:
        try:
            result = db.session.execute(
                delete(Document)
                .where(Document.collection == collection, Document.doc_id == doc_id)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
        except OperationalError as exc:
            db.session.rollback()
            raise StoreUnavailableError(f"Document store unavailable: {exc.orig}") from exc
        existed = (result.rowcount or 0) > 0
        if existed:
            self._notify(collection)
        return existed

    # ── Write paths ──────────────────────────────────────────────────────

    def _insert(self, collection: str, doc_id: str, body: dict) -> int:
        existing = self._load(collection, doc_id)
        if existing is not None:
            raise StaleWriteError(collection, doc_id, 0, existing.version)
        db.session.add(Document(collection=collection, doc_id=doc_id, body=body, version=1))
        db.session.flush()
        return 1

    def _upsert(self, collection: str, doc_id: str, body: dict) -> int:
        row = self._load(collection, doc_id)
        if row is None:
            return self._insert(collection, doc_id, body)
        row.body = body
        row.version = row.version + 1
        db.session.flush()
        return row.version

    def _swap(self, collection: str, doc_id: str, body: dict, expected_version: int) -> int:
        result = db.session.execute(
            update(Document)
            .where(
                Document.collection == collection,
                Document.doc_id == doc_id,
                Document.version == expected_version,
            )
            .values(body=body, version=expected_version + 1, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = self._load(collection, doc_id)
            raise StaleWriteError(collection, doc_id, expected_version, current.version if current else None)
        return expected_version + 1
