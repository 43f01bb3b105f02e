"""Tests for the org tree queries, OrgDirectory caching and the snapshot store."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from sqlalchemy.exc import OperationalError

from src.dr_common.enums import UserType
from src.dr_common.errors import ExternalDependencyError, ValidationError
from src.dr_org.application.service import OrgDirectory
from src.dr_org.domain.hierarchy import (
    MAX_WALK_DEPTH,
    find_agent_ancestors,
    find_descendant_ids,
    find_parent_id,
    resolve_charge_account,
)
from src.dr_org.domain.models import OrgNode, OrgSnapshot
from src.dr_org.infrastructure.snapshot_store import OrgSnapshotStore
from tests.unit.fakes import InMemoryOrgStore, agent_tree


@pytest.fixture
def tree() -> OrgSnapshot:
    return OrgSnapshot.from_nodes(agent_tree())


class TestHierarchy:
    def test_parent(self, tree: OrgSnapshot) -> None:
        assert find_parent_id(tree, "sub") == "main"
        assert find_parent_id(tree, "agent3") is None
        assert find_parent_id(tree, "ghost") is None

    def test_descendants_breadth_first(self, tree: OrgSnapshot) -> None:
        assert find_descendant_ids(tree, "agent2") == ["agent1", "main", "sub"]
        assert find_descendant_ids(tree, "sub") == []

    def test_agent_ancestors_nearest_first(self, tree: OrgSnapshot) -> None:
        assert find_agent_ancestors(tree, "main") == ["agent1", "agent2", "agent3"]
        # the buyer main account is walked through, not counted
        assert find_agent_ancestors(tree, "sub") == ["agent1", "agent2", "agent3"]

    def test_agent_ancestors_capped(self, tree: OrgSnapshot) -> None:
        assert find_agent_ancestors(tree, "main", max_levels=2) == ["agent1", "agent2"]

    def test_inactive_agent_does_not_consume_a_level(self) -> None:
        snapshot = OrgSnapshot.from_nodes(
            [
                OrgNode("a3", None, UserType.AGENT.value),
                OrgNode("a2", "a3", UserType.AGENT.value, is_active=False),
                OrgNode("a1", "a2", UserType.AGENT.value),
                OrgNode("m", "a1", UserType.BUYER_MAIN.value),
            ]
        )
        assert find_agent_ancestors(snapshot, "m") == ["a1", "a3"]

    def test_cycle_terminates(self) -> None:
        snapshot = OrgSnapshot.from_nodes(
            [
                OrgNode("a", "b", UserType.AGENT.value),
                OrgNode("b", "a", UserType.AGENT.value),
                OrgNode("m", "a", UserType.BUYER_MAIN.value),
            ]
        )
        assert find_agent_ancestors(snapshot, "m", max_levels=5) == ["a", "b"]

    def test_runaway_depth_terminates(self) -> None:
        nodes = [OrgNode("n0", None, UserType.BUYER_MAIN.value)]
        nodes += [
            OrgNode(f"n{i}", f"n{i - 1}", UserType.BUYER_MAIN.value)
            for i in range(1, MAX_WALK_DEPTH + 10)
        ]
        snapshot = OrgSnapshot.from_nodes(nodes)
        assert find_agent_ancestors(snapshot, f"n{MAX_WALK_DEPTH + 9}") == []

    def test_main_account_charges_itself(self, tree: OrgSnapshot) -> None:
        charge = resolve_charge_account(tree, "main")
        assert (charge.charge_user_id, charge.routed) == ("main", False)

    def test_sub_account_routed_to_main(self, tree: OrgSnapshot) -> None:
        charge = resolve_charge_account(tree, "sub")
        assert (charge.request_user_id, charge.charge_user_id, charge.routed) == (
            "sub",
            "main",
            True,
        )

    def test_unknown_user_charges_itself(self, tree: OrgSnapshot) -> None:
        assert resolve_charge_account(tree, "ghost").charge_user_id == "ghost"

    def test_orphan_sub_account_rejected(self) -> None:
        snapshot = OrgSnapshot.from_nodes(
            [
                OrgNode("agent", None, UserType.AGENT.value),
                OrgNode("s", "agent", UserType.BUYER_SUB.value),
            ]
        )
        with pytest.raises(ValidationError):
            resolve_charge_account(snapshot, "s")

    def test_snapshot_json_round_trip(self, tree: OrgSnapshot) -> None:
        assert OrgSnapshot.from_json(tree.to_json()) == tree


class TestOrgDirectory:
    async def test_snapshot_is_cached(self) -> None:
        store = InMemoryOrgStore(agent_tree())
        org = OrgDirectory(store=store, ttl_seconds=60)

        await org.find_parent_id(MagicMock(), "sub")
        await org.find_agent_ancestors(MagicMock(), "main", 3)

        assert store.loads == 1

    async def test_unknown_user_forces_reload(self) -> None:
        store = InMemoryOrgStore(agent_tree())
        org = OrgDirectory(store=store, ttl_seconds=60)
        await org.find_parent_id(MagicMock(), "main")

        store.nodes.append(OrgNode("sub2", "main", UserType.BUYER_SUB.value))
        charge = await org.resolve_charge_account(MagicMock(), "sub2")

        assert charge.charge_user_id == "main"
        assert store.loads == 2

    async def test_unknown_id_does_not_reload_again_within_ttl(self) -> None:
        now = [1000.0]
        store = InMemoryOrgStore(agent_tree())
        org = OrgDirectory(store=store, ttl_seconds=60, clock=lambda: now[0])

        await org.resolve_charge_account(MagicMock(), "ghost")
        await org.resolve_charge_account(MagicMock(), "ghost")
        assert store.loads == 1

        now[0] += 61
        await org.resolve_charge_account(MagicMock(), "ghost")
        assert store.loads == 2

    async def test_refresh_forgets_unknown_ids(self) -> None:
        store = InMemoryOrgStore(agent_tree())
        org = OrgDirectory(store=store, ttl_seconds=60)
        await org.resolve_charge_account(MagicMock(), "ghost")

        store.nodes.append(OrgNode("ghost", "main", UserType.BUYER_SUB.value))
        await org.refresh(MagicMock())
        charge = await org.resolve_charge_account(MagicMock(), "ghost")

        assert charge.charge_user_id == "main"

    async def test_list_agent_ids(self) -> None:
        org = OrgDirectory(store=InMemoryOrgStore(agent_tree()), ttl_seconds=60)
        assert await org.list_agent_ids(MagicMock()) == ["agent1", "agent2", "agent3"]

    async def test_refresh_invalidates(self) -> None:
        store = InMemoryOrgStore(agent_tree())
        org = OrgDirectory(store=store, ttl_seconds=60)
        await org.find_parent_id(MagicMock(), "main")
        await org.refresh(MagicMock())
        assert store.loads == 2

    async def test_is_agent(self) -> None:
        org = OrgDirectory(store=InMemoryOrgStore(agent_tree()), ttl_seconds=60)
        assert await org.is_agent(MagicMock(), "agent1") is True
        assert await org.is_agent(MagicMock(), "main") is False
        assert await org.is_agent(MagicMock(), "ghost") is False


class TestOrgSnapshotStore:
    async def test_cache_failure_is_a_miss(self) -> None:
        redis = AsyncMock()
        redis.get.side_effect = RedisConnectionError("down")
        with patch(
            "src.dr_org.infrastructure.snapshot_store.get_redis", AsyncMock(return_value=redis)
        ):
            assert await OrgSnapshotStore().get_cached() is None

    async def test_cache_hit_decodes_snapshot(self, tree: OrgSnapshot) -> None:
        redis = AsyncMock()
        redis.get.return_value = tree.to_json()
        with patch(
            "src.dr_org.infrastructure.snapshot_store.get_redis", AsyncMock(return_value=redis)
        ):
            assert await OrgSnapshotStore().get_cached() == tree

    async def test_database_failure_is_external_dependency_error(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = OperationalError("SELECT", {}, Exception("gone"))
        with pytest.raises(ExternalDependencyError) as exc_info:
            await OrgSnapshotStore().load(db)
        assert exc_info.value.http_status == 503
