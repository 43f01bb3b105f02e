"""Loads the org tree from the users table and caches it in Redis as JSON."""

import logging

from redis.exceptions import RedisError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.dr_common.errors import ExternalDependencyError
from src.dr_common.redis_client import get_redis
from src.dr_org.domain.models import OrgNode, OrgSnapshot
from src.dr_org.infrastructure.db_models import UserModel

logger = logging.getLogger(__name__)

_CACHE_KEY = "dr:org:snapshot"


class OrgSnapshotStore:
    async def load(self, db: AsyncSession) -> OrgSnapshot:
        try:
            result = await db.execute(
                select(
                    UserModel.id,
                    UserModel.parent_user_id,
                    UserModel.user_type,
                    UserModel.is_active,
                )
            )
            rows = result.all()
        except SQLAlchemyError as exc:
            raise ExternalDependencyError("org directory", str(exc)) from exc
        return OrgSnapshot.from_nodes(
            [
                OrgNode(
                    user_id=str(r.id),
                    parent_user_id=str(r.parent_user_id) if r.parent_user_id else None,
                    user_type=r.user_type,
                    is_active=r.is_active,
                )
                for r in rows
            ]
        )

    async def get_cached(self) -> OrgSnapshot | None:
        try:
            redis = await get_redis()
            raw = await redis.get(_CACHE_KEY)
        except RedisError as exc:
            logger.warning("Org snapshot cache read failed: %s", exc)
            return None
        return OrgSnapshot.from_json(raw) if raw else None

    async def put_cached(self, snapshot: OrgSnapshot, ttl_seconds: int) -> None:
        try:
            redis = await get_redis()
            await redis.set(_CACHE_KEY, snapshot.to_json(), ex=ttl_seconds)
        except RedisError as exc:
            logger.warning("Org snapshot cache write failed: %s", exc)

    async def invalidate(self) -> None:
        try:
            redis = await get_redis()
            await redis.delete(_CACHE_KEY)
        except RedisError as exc:
            logger.warning("Org snapshot cache invalidate failed: %s", exc)
