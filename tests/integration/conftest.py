"""Integration-test fixtures (requires running PG + Redis, migrated schema).

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.
"""

import uuid
from dataclasses import dataclass

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from src.dr_common.database import session_scope
from src.dr_gateway.auth.jwt_handler import create_access_token
from src.main import app


@dataclass(frozen=True)
class OrgTree:
    """agent3 <- agent2 <- agent1 <- main <- sub, ids unique per test session."""
    admin: str
    agent3: str
    agent2: str
    agent1: str
    main: str
    sub: str

    def headers(self, user_id: str, role: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client, keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def org_tree() -> OrgTree:
    """Insert a fresh agent chain into the users table."""
    suffix = uuid.uuid4().hex[:8]
    tree = OrgTree(*(f"{name}_{suffix}" for name in OrgTree.__dataclass_fields__))
    rows = [
        (tree.admin, None, "ADMIN"),
        (tree.agent3, None, "AGENT"),
        (tree.agent2, tree.agent3, "AGENT"),
        (tree.agent1, tree.agent2, "AGENT"),
        (tree.main, tree.agent1, "BUYER_MAIN"),
        (tree.sub, tree.main, "BUYER_SUB"),
    ]
    try:
        async with session_scope() as db:
            for user_id, parent, user_type in rows:
                await db.execute(
                    text(
                        "INSERT INTO users (id, username, parent_user_id, user_type) "
                        "VALUES (:id, :id, :parent, :user_type)"
                    ),
                    {"id": user_id, "parent": parent, "user_type": user_type},
                )
            await db.commit()
    except (OperationalError, OSError) as exc:
        pytest.skip(f"PostgreSQL not reachable: {exc}")
    return tree
