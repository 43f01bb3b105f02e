"""008: create commission_records table

Revision ID: 008
Revises: 007
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE commission_records (
            record_id           BIGSERIAL       PRIMARY KEY,
            agent_user_id       VARCHAR(64)     NOT NULL,
            record_type         VARCHAR(30)     NOT NULL,
            amount              NUMERIC(18, 2)  NOT NULL,
            available_before    NUMERIC(18, 2)  NOT NULL,
            available_after     NUMERIC(18, 2)  NOT NULL,
            trigger_bill_id     BIGINT          REFERENCES billing_records (bill_id),
            hierarchy_level     SMALLINT,
            source_user_id      VARCHAR(64),
            settlement_id       BIGINT,
            operator_id         VARCHAR(64),
            remark              VARCHAR(512),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_commission_records_type CHECK (record_type IN (
                'RECHARGE_COMMISSION', 'SETTLEMENT_FREEZE', 'SETTLEMENT_PAYOUT',
                'SETTLEMENT_ROLLBACK', 'MANUAL_ADJUST'
            )),
            CONSTRAINT ck_commission_records_level CHECK (
                hierarchy_level IS NULL OR hierarchy_level BETWEEN 1 AND 3
            )
        );
    """)
    # One accrual per (recharge, level); replays hit ON CONFLICT DO NOTHING.
    op.execute("""
        CREATE UNIQUE INDEX uq_commission_records_trigger_level
            ON commission_records (trigger_bill_id, hierarchy_level)
            WHERE trigger_bill_id IS NOT NULL;
    """)
    op.execute(
        "CREATE INDEX idx_commission_records_agent "
        "ON commission_records (agent_user_id, record_id DESC);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS commission_records CASCADE;")
