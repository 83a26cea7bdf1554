from sqlalchemy import (
    Column, Integer, String, DateTime, Text, BigInteger, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()

class StoredDocument(Base):
    """
    Schemaless document row backing the club document store.

    Each row is one document of one collection (players, events, signups,
    transactions, ...). The payload is kept as JSON so callers own the shape.
    """
    __tablename__ = 'documents'

    id = Column(Integer, primary_key=True)
    collection = Column(String(100), nullable=False, index=True)
    doc_id = Column(String(200), nullable=False)
    data = Column(JSON, nullable=False, default=dict)

    # Metadata
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('collection', 'doc_id'),)

    def __repr__(self):
        return f"<StoredDocument(collection='{self.collection}', doc_id='{self.doc_id}')>"

class Configuration(Base):
    """Runtime configuration value stored as JSON text."""
    __tablename__ = 'configurations'

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Configuration(key='{self.key}')>"

class AuditLog(Base):
    """Audit trail for admin actions (configuration edits, finalization, deletions)."""
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    user_id = Column(BigInteger, nullable=False, index=True)
    action = Column(String(100), nullable=False)
    target_type = Column(String(50), nullable=True)
    target_id = Column(String(200), nullable=True)
    details = Column(Text, nullable=True)  # JSON encoded
    reason = Column(Text, nullable=True)
    timestamp = Column(DateTime, default=func.now())

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', user_id={self.user_id}, target={self.target_type}:{self.target_id})>"
