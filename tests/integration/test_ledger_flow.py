"""End-to-end flows over HTTP against a real database.

Pre-condition: PostgreSQL and Redis running, `alembic upgrade head` applied.
"""

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from tests.integration.conftest import OrgTree

pytestmark = pytest.mark.asyncio(loop_scope="session")


def _d(value: str) -> Decimal:
    return Decimal(value)


class TestRechargeAndCommission:
    async def test_recharge_pays_three_agent_levels(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        admin = org_tree.headers(org_tree.admin, "ADMIN")
        resp = await client.post(
            "/api/v1/balance/recharge",
            json={"user_id": org_tree.main, "amount": "1000.00"},
            headers=admin,
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert _d(data["balance"]["dr_balance"]) == _d("1000.00")
        assert _d(data["commission"]["credited_total"]) == _d("600.00")

        for agent, expected in (
            (org_tree.agent1, "300.00"),
            (org_tree.agent2, "200.00"),
            (org_tree.agent3, "100.00"),
        ):
            resp = await client.get(
                "/api/v1/commission/account", headers=org_tree.headers(agent, "AGENT")
            )
            assert _d(resp.json()["data"]["available_commission"]) == _d(expected)

    async def test_replay_credits_nothing_twice(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        resp = await client.post(
            "/api/v1/commission/replay",
            headers=org_tree.headers(org_tree.admin, "ADMIN"),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["credited_levels"] == 0


class TestRoutedDeduction:
    async def test_sub_account_charged_on_main(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        resp = await client.post(
            "/api/v1/balance/deduct/details",
            json={"amount": "50.00", "business_type": "SMS"},
            headers=org_tree.headers(org_tree.sub, "BUYER_SUB"),
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["charge_user_id"] == org_tree.main
        assert data["routed_to_main_account"] is True
        assert data["bill"]["extra_data"] == {"request_user_id": org_tree.sub}

    async def test_main_account_overdraft_rejected(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        resp = await client.post(
            "/api/v1/balance/deduct",
            json={"amount": "100000.00", "business_type": "SMS"},
            headers=org_tree.headers(org_tree.main, "BUYER_MAIN"),
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == 2001


class TestResourceBilling:
    async def test_register_marketing_instance(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        resource_id = f"inst_{uuid.uuid4().hex[:8]}"
        headers = org_tree.headers(org_tree.main, "BUYER_MAIN")
        resp = await client.post(
            "/api/v1/billing/resources", json={"resource_id": resource_id}, headers=headers
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert _d(data["pre_deduct_bill"]["amount"]) == _d("100.00")
        assert _d(data["balance"]["pre_deducted_balance"]) >= _d("100.00")

        dup = await client.post(
            "/api/v1/billing/resources", json={"resource_id": resource_id}, headers=headers
        )
        assert dup.status_code == 409


class TestSettlement:
    async def test_apply_and_partially_approve(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        agent = org_tree.headers(org_tree.agent1, "AGENT")
        admin = org_tree.headers(org_tree.admin, "ADMIN")

        applied = await client.post(
            "/api/v1/settlements", json={"amount": "100.00"}, headers=agent
        )
        assert applied.status_code == 200
        settlement_id = applied.json()["data"]["settlement"]["settlement_id"]

        approved = await client.post(
            f"/api/v1/settlements/{settlement_id}/approve",
            json={"approved_amount": "80.00"},
            headers=admin,
        )
        assert approved.status_code == 200
        account = approved.json()["data"]["account"]
        assert _d(account["settled_commission"]) == _d("80.00")
        assert _d(account["available_commission"]) == _d("220.00")

        again = await client.post(f"/api/v1/settlements/{settlement_id}/cancel", headers=agent)
        assert again.status_code == 409


class TestReconciliation:
    async def test_main_account_reconciles(
        self, client: AsyncClient, org_tree: OrgTree
    ) -> None:
        resp = await client.get(
            "/api/v1/ledger/reconciliation",
            params={"user_id": org_tree.main},
            headers=org_tree.headers(org_tree.admin, "ADMIN"),
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["violations"] == []
