"""007: create commission_accounts table

Revision ID: 007
Revises: 006
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE commission_accounts (
            agent_user_id                   VARCHAR(64)     PRIMARY KEY,
            total_commission                NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            pending_settlement_commission   NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            settled_commission              NUMERIC(18, 2)  NOT NULL DEFAULT 0,
            version                         BIGINT          NOT NULL DEFAULT 0,
            status                          VARCHAR(20)     NOT NULL DEFAULT 'NORMAL',
            created_at                      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at                      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_commission_accounts_pending_gte_0 CHECK (pending_settlement_commission >= 0),
            CONSTRAINT ck_commission_accounts_settled_gte_0 CHECK (settled_commission >= 0),
            CONSTRAINT ck_commission_accounts_available_gte_0 CHECK (
                total_commission - pending_settlement_commission - settled_commission >= 0
            ),
            CONSTRAINT ck_commission_accounts_status CHECK (status IN ('NORMAL', 'FROZEN'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_commission_accounts_updated_at
            BEFORE UPDATE ON commission_accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS commission_accounts CASCADE;")
