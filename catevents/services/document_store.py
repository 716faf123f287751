# catevents/services/document_store.py
"""
Minimal document store on top of a SQLAlchemy session.
Documents are JSON bodies addressed by (collection, id).
"""

from datetime import datetime, timezone

from sqlalchemy import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catevents.errors import DocumentNotFoundError, DuplicateKeyError
from catevents.models.stored_document import StoredDocument
from catevents.utils.logger import get_logger

logger = get_logger(__name__)


class DocumentStore:
    def __init__(self, db: Session):
        self.db = db

    def insert_unique(self, collection: str, document_id: str, document: dict) -> None:
        """Insert a document; raises DuplicateKeyError if the id is taken."""
        statement = insert(StoredDocument).values(
            collection=collection,
            id=document_id,
            body=document,
            created_at=datetime.now(timezone.utc).replace(tzinfo=None),
        )
        try:
            self.db.execute(statement)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"[STORE] Duplicate key {collection}/{document_id}")
            raise DuplicateKeyError(collection, document_id) from e
        logger.debug(f"[STORE] Inserted {collection}/{document_id}")

    def _row(self, collection: str, document_id: str) -> StoredDocument:
        row = (self.db.query(StoredDocument)
               .filter(StoredDocument.collection == collection, StoredDocument.id == document_id)
               .first())
        if row is None:
            raise DocumentNotFoundError(collection, document_id)
        return row

    def find_by_id(self, collection: str, document_id: str) -> dict:
        return self._row(collection, document_id).body

    def list_documents(self, collection: str) -> list[dict]:
        """All documents of a collection in insertion order."""
        rows = (self.db.query(StoredDocument)
                .filter(StoredDocument.collection == collection)
                .order_by(StoredDocument.seq)
                .all())
        return [row.body for row in rows]

    def count(self, collection: str) -> int:
        return self.db.query(StoredDocument).filter(StoredDocument.collection == collection).count()

    def delete_by_id(self, collection: str, document_id: str) -> None:
        self.db.delete(self._row(collection, document_id))
        self.db.commit()
        logger.info(f"[STORE] Deleted {collection}/{document_id}")
