"""003: create user_balances table

Revision ID: 003
Revises: 002
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # dr_balance may go negative: routed sub-account charges can overdraw.
    op.execute("""
        CREATE TABLE user_balances (
            user_id                 VARCHAR(64)     PRIMARY KEY,
            dr_balance              NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            pre_deducted_balance    NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            frozen_amount           NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            total_recharge          NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            total_consume           NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            total_refund            NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            version                 BIGINT          NOT NULL DEFAULT 0,
            status                  VARCHAR(20)     NOT NULL DEFAULT 'NORMAL',
            created_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_user_balances_pre_deducted_gte_0 CHECK (pre_deducted_balance >= 0),
            CONSTRAINT ck_user_balances_frozen_gte_0       CHECK (frozen_amount >= 0),
            CONSTRAINT ck_user_balances_status CHECK (status IN ('NORMAL', 'FROZEN', 'CANCELLED'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_user_balances_updated_at
            BEFORE UPDATE ON user_balances
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE user_balances IS 'DR point balances, amounts in DR with 2 decimals';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_balances CASCADE;")
