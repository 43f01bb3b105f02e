"""OrgDirectory: hierarchy resolver and charge-account resolver.

Backed by a snapshot of the users table cached in Redis for
ORG_CACHE_TTL_SECONDS. A lookup for a user missing from the cached snapshot
forces one reload, so brand-new accounts are routed correctly without
waiting for the TTL. An id that is still missing after the reload is
remembered in-process for the TTL and does not trigger further reloads.
"""

import time
from collections.abc import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.dr_org.domain import hierarchy
from src.dr_org.domain.models import ChargeAccount, OrgSnapshot
from src.dr_org.domain.repository import OrgSnapshotStoreProtocol
from src.dr_org.infrastructure.snapshot_store import OrgSnapshotStore

_MAX_UNKNOWN_IDS = 10_000


class OrgDirectory:
    def __init__(
        self,
        store: OrgSnapshotStoreProtocol | None = None,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: OrgSnapshotStoreProtocol = store or OrgSnapshotStore()
        self._ttl = ttl_seconds or settings.ORG_CACHE_TTL_SECONDS
        self._clock = clock
        self._unknown_until: dict[str, float] = {}

    def _known_missing(self, user_id: str) -> bool:
        expires = self._unknown_until.get(user_id)
        if expires is None:
            return False
        if expires <= self._clock():
            del self._unknown_until[user_id]
            return False
        return True

    def _remember_missing(self, user_id: str) -> None:
        now = self._clock()
        if len(self._unknown_until) >= _MAX_UNKNOWN_IDS:
            self._unknown_until = {
                uid: exp for uid, exp in self._unknown_until.items() if exp > now
            }
        if len(self._unknown_until) < _MAX_UNKNOWN_IDS:
            self._unknown_until[user_id] = now + self._ttl

    async def _snapshot(self, db: AsyncSession, user_id: str | None = None) -> OrgSnapshot:
        snapshot = await self._store.get_cached()
        if snapshot is not None and (
            user_id is None or user_id in snapshot or self._known_missing(user_id)
        ):
            return snapshot
        snapshot = await self._store.load(db)
        await self._store.put_cached(snapshot, self._ttl)
        if user_id is not None and user_id not in snapshot:
            self._remember_missing(user_id)
        return snapshot

    async def refresh(self, db: AsyncSession) -> None:
        self._unknown_until.clear()
        await self._store.invalidate()
        await self._snapshot(db)

    async def list_agent_ids(self, db: AsyncSession) -> list[str]:
        snapshot = await self._snapshot(db)
        return sorted(n.user_id for n in snapshot.nodes.values() if n.is_agent and n.is_active)

    async def find_parent_id(self, db: AsyncSession, user_id: str) -> str | None:
        return hierarchy.find_parent_id(await self._snapshot(db, user_id), user_id)

    async def find_descendant_ids(self, db: AsyncSession, user_id: str) -> list[str]:
        return hierarchy.find_descendant_ids(await self._snapshot(db, user_id), user_id)

    async def find_agent_ancestors(
        self, db: AsyncSession, user_id: str, max_levels: int
    ) -> list[str]:
        return hierarchy.find_agent_ancestors(
            await self._snapshot(db, user_id), user_id, max_levels
        )

    async def resolve_charge_account(self, db: AsyncSession, user_id: str) -> ChargeAccount:
        return hierarchy.resolve_charge_account(await self._snapshot(db, user_id), user_id)

    async def is_agent(self, db: AsyncSession, user_id: str) -> bool:
        node = (await self._snapshot(db, user_id)).get(user_id)
        return node is not None and node.is_agent and node.is_active
