"""004: create billing_records table

Revision ID: 004
Revises: 003
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Append-only: no updated_at, no UPDATE trigger.
    op.execute("""
        CREATE TABLE billing_records (
            bill_id         BIGSERIAL       PRIMARY KEY,
            bill_no         VARCHAR(32)     NOT NULL,
            user_id         VARCHAR(64)     NOT NULL,
            operator_id     VARCHAR(64),
            bill_type       VARCHAR(20)     NOT NULL,
            billing_type    VARCHAR(20)     NOT NULL DEFAULT 'INSTANT',
            business_type   VARCHAR(50)     NOT NULL,
            business_id     VARCHAR(128),
            amount          NUMERIC(18, 2)  NOT NULL,
            balance_before  NUMERIC(18, 2)  NOT NULL,
            balance_after   NUMERIC(18, 2)  NOT NULL,
            balance_account VARCHAR(20)     NOT NULL DEFAULT 'BASE',
            description     VARCHAR(512),
            extra_data      JSONB,
            status          VARCHAR(20)     NOT NULL DEFAULT 'SUCCESS',
            consumer        VARCHAR(64),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_billing_records_bill_no   UNIQUE (bill_no),
            CONSTRAINT ck_billing_records_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_billing_records_bill_type CHECK (
                bill_type IN ('RECHARGE', 'CONSUME', 'REFUND')
            ),
            CONSTRAINT ck_billing_records_billing_type CHECK (billing_type IN ('INSTANT', 'DAILY')),
            CONSTRAINT ck_billing_records_account CHECK (balance_account IN ('BASE', 'RESERVED'))
        );
    """)
    op.execute(
        "CREATE INDEX idx_billing_records_user ON billing_records (user_id, bill_id DESC);"
    )
    op.execute(
        "CREATE INDEX idx_billing_records_type_time "
        "ON billing_records (bill_type, business_type, created_at);"
    )
    op.execute("COMMENT ON TABLE billing_records IS 'Immutable DR ledger, one row per balance change';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS billing_records CASCADE;")
