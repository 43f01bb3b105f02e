"""005: create price_configs table and seed catalog

Revision ID: 005
Revises: 004
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE price_configs (
            business_type   VARCHAR(50)     PRIMARY KEY,
            business_name   VARCHAR(100)    NOT NULL,
            price_unit      VARCHAR(32)     NOT NULL,
            dr_price        NUMERIC(18, 4)  NOT NULL,
            billing_type    VARCHAR(20)     NOT NULL DEFAULT 'INSTANT',
            status          VARCHAR(20)     NOT NULL DEFAULT 'ACTIVE',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_price_configs_price_gte_0 CHECK (dr_price >= 0),
            CONSTRAINT ck_price_configs_billing_type CHECK (billing_type IN ('INSTANT', 'DAILY')),
            CONSTRAINT ck_price_configs_status CHECK (status IN ('ACTIVE', 'INACTIVE'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_price_configs_updated_at
            BEFORE UPDATE ON price_configs
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    # Commission rows store the level rate in dr_price.
    op.execute("""
        INSERT INTO price_configs (business_type, business_name, price_unit, dr_price, billing_type)
        VALUES
            ('INSTANCE_PRE_DEDUCT',     'Marketing instance pre-deduction', 'DR/instance', 100.00, 'INSTANT'),
            ('INSTANCE_MARKETING',      'Marketing instance',               'DR/day',        6.00, 'DAILY'),
            ('INSTANCE_PROSPECTING',    'Prospecting instance',             'DR/day',        1.00, 'DAILY'),
            ('SMS',                     'SMS delivery',                     'DR/message',    0.05, 'INSTANT'),
            ('AGENT_LEVEL1_COMMISSION', 'Level 1 agent commission',         'rate',          0.30, 'INSTANT'),
            ('AGENT_LEVEL2_COMMISSION', 'Level 2 agent commission',         'rate',          0.20, 'INSTANT'),
            ('AGENT_LEVEL3_COMMISSION', 'Level 3 agent commission',         'rate',          0.10, 'INSTANT');
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS price_configs CASCADE;")
