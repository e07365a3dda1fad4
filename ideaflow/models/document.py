"""
IdeaFlow
Document model — backing table for the SQL document store.

Models:
    - Document: one JSON document per (collection, doc_id), with a version
      counter used for compare-and-swap writes.
"""

from datetime import datetime, timezone

from ideaflow.models import db


class Document(db.Model):
    """
    A JSON document in a named collection.

    ``version`` starts at 1 on insert and increments on every write. The
    store's conditional UPDATE matches on it, so two writers holding the same
    version cannot both succeed.
    """

    __tablename__ = "documents"
    __table_args__ = (
        db.UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc"),
        db.Index("ix_documents_collection", "collection"),
    )

    id = db.Column(db.Integer, primary_key=True)
    collection = db.Column(
        db.String(64), nullable=False,
        comment="ideas | events | students | participations",
    )
    doc_id = db.Column(db.String(128), nullable=False)
    body = db.Column(db.JSON, nullable=False, default=dict)
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "collection": self.collection,
            "doc_id": self.doc_id,
            "body": self.body,
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self) -> str:
        return f"<Document {self.collection}/{self.doc_id} v{self.version}>"
