"""
Runtime configuration for the club event bot.

Values live in the ``configurations`` table as JSON, are cached in memory
and every change is written to the audit log. Keys are dotted by category
(``finalization.exactly_once``, ``events.default_participation_xp``, ...).
"""

import json
from typing import Any, Dict
from sqlalchemy import select

from clubbot.database.models import Configuration
from clubbot.services.base import BaseService
from clubbot.utils.logger import setup_logger

logger = setup_logger(__name__)

class ConfigurationService(BaseService):
    """Manages runtime configuration with simple caching and audit trail."""

    def __init__(self, database):
        super().__init__(database)
        self._cache: Dict[str, Any] = {}

    async def _read_all(self) -> Dict[str, Any]:
        values = {}
        async with self.db.get_session() as session:
            result = await session.execute(select(Configuration))
            for config in result.scalars().all():
                try:
                    values[config.key] = json.loads(config.value)
                except json.JSONDecodeError:
                    logger.warning(f"Invalid JSON for config key '{config.key}', skipping")
        return values

    async def load_all(self):
        """Reload every configuration value into the cache."""
        self._cache = await self.execute_with_retry(self._read_all)
        logger.info(f"Loaded {len(self._cache)} configuration parameters")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key (e.g., 'finalization.exactly_once')
            default: Default value if key not found
        """
        return self._cache.get(key, default)

    async def set(self, key: str, value: Any, user_id: int):
        """
        Persist a configuration value and audit the change.

        Args:
            key: Configuration key
            value: JSON-serializable value
            user_id: Discord user ID for audit trail
        """
        async with self.get_session() as session:
            result = await session.execute(
                select(Configuration).where(Configuration.key == key)
            )
            config = result.scalar_one_or_none()

            old_value = None
            if config:
                try:
                    old_value = json.loads(config.value)
                except json.JSONDecodeError:
                    old_value = {"error": "invalid JSON", "raw": config.value}
                config.value = json.dumps(value)
            else:
                session.add(Configuration(key=key, value=json.dumps(value)))

            await self.record_audit(
                user_id, 'config_set',
                target_type='config', target_id=key,
                details={'old_value': old_value, 'new_value': value},
                session=session
            )

        # Reload so the cache reflects what was committed
        await self.load_all()

    def list_all(self) -> Dict[str, Any]:
        return self._cache.copy()

    def get_by_category(self, category: str) -> Dict[str, Any]:
        """Values under ``category.``, keyed without the prefix."""
        prefix = f"{category}."
        return {
            key[len(prefix):]: value
            for key, value in self._cache.items()
            if key.startswith(prefix)
        }
