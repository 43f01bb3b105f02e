"""Snapshot store Protocol: unit tests inject an in-memory store."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_org.domain.models import OrgSnapshot


class OrgSnapshotStoreProtocol(Protocol):
    async def load(self, db: AsyncSession) -> OrgSnapshot: ...

    async def get_cached(self) -> OrgSnapshot | None: ...

    async def put_cached(self, snapshot: OrgSnapshot, ttl_seconds: int) -> None: ...

    async def invalidate(self) -> None: ...
