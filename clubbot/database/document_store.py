"""
Document store boundary for the club event engine.

The engine only ever talks to persistence through four primitives:

- create_record(collection, data) -> id   insert with a generated identifier
- set_record(collection, id, data)        upsert at a caller-chosen identifier
- update_record(collection, record)       full replace of an existing record
- delete_record(collection, id)           remove by identifier

``get_record`` and ``list_records`` are read helpers used by the operations
layer to build snapshots; the engine itself never reads from the store.

SqlDocumentStore implements the interface over a single ``documents`` table
with SQLAlchemy's async engine. Each call is its own transaction; nothing
spans several documents.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete

from clubbot.database.models import StoredDocument
from clubbot.utils.exceptions import RecordNotFoundError
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)


class Collections:
    """Collection names shared by the engine and the operations layer."""
    PLAYERS = 'players'
    EVENTS = 'events'
    SIGNUPS = 'signups'
    TRANSACTIONS = 'transactions'
    SCORING_RULES = 'gamificationSettings'
    RANKS = 'ranks'
    INVENTORY = 'inventory'
    BADGES = 'badges'
    FINALIZATIONS = 'finalizations'


class DocumentStore(ABC):
    """Abstract document store used by the attendance and finalization services."""

    @abstractmethod
    async def create_record(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def set_record(self, collection: str, record_id: str, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def update_record(self, collection: str, record: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    async def delete_record(self, collection: str, record_id: str) -> None:
        ...

    @abstractmethod
    async def get_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_records(self, collection: str, **filters: Any) -> List[Dict[str, Any]]:
        ...


class SqlDocumentStore(DocumentStore):
    """DocumentStore backed by the ``documents`` table."""

    def __init__(self, database):
        """
        Initialize with database instance.

        Args:
            database: Initialized Database providing ``transaction()``/``get_session()``
        """
        self.db = database
        self._lock: Optional[asyncio.Lock] = None

    @property
    def _write_lock(self) -> asyncio.Lock:
        # SQLite allows a single writer; concurrent gathers queue here.
        # Created on first write so it binds to the running loop.
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _find(self, session, collection: str, record_id: str) -> Optional[StoredDocument]:
        result = await session.execute(
            select(StoredDocument).where(
                StoredDocument.collection == collection,
                StoredDocument.doc_id == record_id
            )
        )
        return result.scalar_one_or_none()

    async def create_record(self, collection: str, data: Dict[str, Any]) -> str:
        record_id = uuid.uuid4().hex
        payload = dict(data)
        payload['id'] = record_id
        async with self._write_lock:
            async with self.db.transaction() as session:
                session.add(StoredDocument(collection=collection, doc_id=record_id, data=payload))
        logger.debug(f"Created {collection}/{record_id}")
        return record_id

    async def set_record(self, collection: str, record_id: str, data: Dict[str, Any]) -> None:
        payload = dict(data)
        payload['id'] = record_id
        async with self._write_lock:
            async with self.db.transaction() as session:
                existing = await self._find(session, collection, record_id)
                if existing:
                    existing.data = payload
                else:
                    session.add(StoredDocument(collection=collection, doc_id=record_id, data=payload))
        logger.debug(f"Set {collection}/{record_id}")

    async def update_record(self, collection: str, record: Dict[str, Any]) -> None:
        record_id = record.get('id')
        if not record_id:
            raise RecordNotFoundError(collection, '<missing id>')
        async with self._write_lock:
            async with self.db.transaction() as session:
                existing = await self._find(session, collection, record_id)
                if existing is None:
                    raise RecordNotFoundError(collection, record_id)
                existing.data = dict(record)
        logger.debug(f"Updated {collection}/{record_id}")

    async def delete_record(self, collection: str, record_id: str) -> None:
        async with self._write_lock:
            async with self.db.transaction() as session:
                await session.execute(
                    delete(StoredDocument).where(
                        StoredDocument.collection == collection,
                        StoredDocument.doc_id == record_id
                    )
                )
        logger.debug(f"Deleted {collection}/{record_id}")

    async def get_record(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        async with self.db.get_session() as session:
            document = await self._find(session, collection, record_id)
            return dict(document.data) if document else None

    async def list_records(self, collection: str, **filters: Any) -> List[Dict[str, Any]]:
        """
        List every document of a collection, optionally filtered.

        Filters are top-level equality matches on the document payload
        (e.g. ``list_records('signups', eventId='ev001')``) and are applied in
        Python so the store stays portable across SQL backends.
        """
        async with self.db.get_session() as session:
            result = await session.execute(
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.id)
            )
            documents = [dict(d.data) for d in result.scalars().all()]

        if not filters:
            return documents
        return [
            d for d in documents
            if all(d.get(key) == value for key, value in filters.items())
        ]
