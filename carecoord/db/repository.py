"""Shared repository base helpers."""
import zlib
from uuid import UUID
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession


class BaseRepository:
    """Base repository with common DB helpers."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @property
    def dialect(self) -> str:
        return self.db.get_bind().dialect.name

    async def _advisory_lock(self, namespace: str, key: UUID):
        """
        Take a transaction-scoped advisory lock on PostgreSQL.

        Released on commit or rollback. SQLite serialises writers at the
        database level, so nothing is needed there.
        """
        if self.dialect != "postgresql":
            return
        lock_key = zlib.crc32(f"{namespace}:{key}".encode()) - 2**31
        await self.db.execute(select(func.pg_advisory_xact_lock(lock_key)))
