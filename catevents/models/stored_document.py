# catevents/models/stored_document.py
"""
Generic document table backing the document store.
(collection, id) is unique, which gives insert-if-absent semantics for
concurrent uploads of the same event. `seq` keeps insertion order.
"""

from sqlalchemy import JSON, Column, DateTime, Integer, String, UniqueConstraint
from catevents.database import Base


class StoredDocument(Base):
    __tablename__ = "documents"
    __table_args__ = (UniqueConstraint("collection", "id", name="uq_documents_collection_id"),)

    seq = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(50), nullable=False, index=True)
    id = Column(String(24), nullable=False)
    body = Column(JSON, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<StoredDocument {self.collection}/{self.id}>"
