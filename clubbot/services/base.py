"""
Base service for SQL-backed club services.

Owns the audit trail helper shared by runtime configuration and the
operations layer, plus a small retry wrapper for reads.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from clubbot.database.models import AuditLog
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)

class BaseService:
    """Base class for services that write SQL tables through a Database."""

    def __init__(self, database):
        """
        Args:
            database: Initialized Database instance
        """
        self.db = database

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional scope; commits on exit, rolls back on error."""
        async with self.db.transaction() as session:
            yield session

    async def record_audit(
        self,
        admin_id: int,
        action: str,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        reason: Optional[str] = None,
        session: Optional[AsyncSession] = None
    ) -> None:
        """
        Append an audit log entry for an administrative action.

        Args:
            admin_id: Discord ID of the acting admin
            action: Action name (e.g. "event_finalize", "config_set")
            target_type: Kind of target ("event", "player", "rank", ...)
            target_id: Identifier of the target document
            details: JSON-serializable payload
            reason: Free-text reason supplied by the admin
            session: Reuse an open session instead of opening a new one
        """
        entry = AuditLog(
            user_id=admin_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            details=json.dumps(details or {}, default=str),
            reason=reason
        )
        if session is not None:
            session.add(entry)
        else:
            async with self.get_session() as new_session:
                new_session.add(entry)
        logger.info(f"Audit: {action} by {admin_id} on {target_type}:{target_id}")

    async def execute_with_retry(self, func: Callable, max_retries: int = 3) -> Any:
        """Execute an async callable, retrying with exponential backoff."""
        for attempt in range(max_retries):
            try:
                return await func()
            except Exception as e:
                if attempt == max_retries - 1:
                    raise
                logger.warning(f"Retry attempt {attempt + 1} for {func.__name__}: {e}")
                await asyncio.sleep(0.1 * (2 ** attempt))
