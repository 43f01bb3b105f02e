"""009: create commission_settlements table

Revision ID: 009
Revises: 008
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE commission_settlements (
            settlement_id       BIGSERIAL       PRIMARY KEY,
            agent_user_id       VARCHAR(64)     NOT NULL,
            requested_amount    NUMERIC(18, 2)  NOT NULL,
            approved_amount     NUMERIC(18, 2),
            status              VARCHAR(20)     NOT NULL DEFAULT 'PENDING',
            operator_id         VARCHAR(64),
            remark              VARCHAR(512),
            network             VARCHAR(32),
            address             VARCHAR(128),
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            processed_at        TIMESTAMPTZ,
            CONSTRAINT ck_commission_settlements_requested_gt_0 CHECK (requested_amount > 0),
            CONSTRAINT ck_commission_settlements_approved CHECK (
                approved_amount IS NULL
                OR (approved_amount >= 0 AND approved_amount <= requested_amount)
            ),
            CONSTRAINT ck_commission_settlements_status CHECK (
                status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')
            )
        );
    """)
    op.execute(
        "CREATE INDEX idx_commission_settlements_agent "
        "ON commission_settlements (agent_user_id, settlement_id DESC);"
    )
    op.execute(
        "CREATE INDEX idx_commission_settlements_pending "
        "ON commission_settlements (settlement_id) WHERE status = 'PENDING';"
    )
    op.execute("""
        CREATE TRIGGER trg_commission_settlements_updated_at
            BEFORE UPDATE ON commission_settlements
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS commission_settlements CASCADE;")
