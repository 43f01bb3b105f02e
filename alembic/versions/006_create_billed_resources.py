"""006: create billed_resources table

Revision ID: 006
Revises: 005
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE billed_resources (
            resource_id         VARCHAR(128)    PRIMARY KEY,
            owner_user_id       VARCHAR(64)     NOT NULL,
            charge_user_id      VARCHAR(64)     NOT NULL,
            business_type       VARCHAR(50)     NOT NULL,
            billing_type        VARCHAR(20)     NOT NULL DEFAULT 'DAILY',
            status              VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            total_billed_days   INTEGER         NOT NULL DEFAULT 0,
            total_billed_amount NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            last_billed_date    DATE,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            released_at         TIMESTAMPTZ,
            CONSTRAINT ck_billed_resources_status CHECK (status IN ('ACTIVE', 'RELEASED')),
            CONSTRAINT ck_billed_resources_days_gte_0 CHECK (total_billed_days >= 0)
        );
    """)
    op.execute("""
        CREATE INDEX idx_billed_resources_due
            ON billed_resources (resource_id)
            WHERE status = 'ACTIVE' AND billing_type = 'DAILY';
    """)
    op.execute("CREATE INDEX idx_billed_resources_charge_user ON billed_resources (charge_user_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS billed_resources CASCADE;")
