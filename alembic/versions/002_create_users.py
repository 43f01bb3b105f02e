"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-12
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Owned by the user-management service; only the columns the ledger reads.
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id              VARCHAR(64)     PRIMARY KEY,
            username        VARCHAR(64)     NOT NULL,
            parent_user_id  VARCHAR(64),
            user_type       VARCHAR(20)     NOT NULL DEFAULT 'BUYER_MAIN',
            is_active       BOOLEAN         NOT NULL DEFAULT TRUE,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_users_user_type CHECK (
                user_type IN ('ADMIN', 'AGENT', 'BUYER_MAIN', 'BUYER_SUB')
            ),
            CONSTRAINT ck_users_not_own_parent CHECK (parent_user_id IS NULL OR parent_user_id <> id)
        );
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_users_parent ON users (parent_user_id);")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE users IS 'Organization tree: agents, main accounts, sub accounts';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
