"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              VARCHAR(64)         PRIMARY KEY,
            username        VARCHAR(20)         NOT NULL,
            balance         DOUBLE PRECISION    NOT NULL DEFAULT 0,
            role            VARCHAR(20),
            is_admin        BOOLEAN             NOT NULL DEFAULT FALSE,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_users_username        UNIQUE (username),
            CONSTRAINT ck_users_username_format CHECK (username ~ '^[A-Za-z0-9_]{3,20}$'),
            CONSTRAINT ck_users_role            CHECK (role IS NULL OR role IN ('INTERN', 'FULL_TIME'))
        );
    """)
    op.execute("CREATE INDEX idx_users_role ON users (role) WHERE role IS NOT NULL;")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION em_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE users IS 'Players; created on first authenticated request, never hard-deleted';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
