"""
Repository for sync bookkeeping.

Stores the time of the last successful sync as a single key/value row.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import SyncMetadataModel

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync"


class SyncMetadataRepository:
    """Key/value access to the ``sync_metadata`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[str]:
        result = await self.session.execute(
            select(SyncMetadataModel.value).where(SyncMetadataModel.key == key)
        )
        return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        """Overwrite the value stored under ``key``."""
        stmt = sqlite_insert(SyncMetadataModel).values(key=key, value=value)
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value}
        )
        await self.session.execute(stmt)

    async def get_last_sync_time(self) -> Optional[int]:
        value = await self.get(LAST_SYNC_KEY)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Ignoring malformed last_sync value: {value!r}")
            return None

    async def set_last_sync_time(self, timestamp: int) -> None:
        await self.set(LAST_SYNC_KEY, str(int(timestamp)))
