"""004: create positions table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id              BIGSERIAL           PRIMARY KEY,
            user_id         VARCHAR(64)         NOT NULL REFERENCES users (id),
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets (id),
            outcome_id      VARCHAR(64)         NOT NULL REFERENCES outcomes (id),
            shares          DOUBLE PRECISION    NOT NULL DEFAULT 0,
            avg_price       DOUBLE PRECISION    NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_positions_user_outcome    UNIQUE (user_id, outcome_id),
            CONSTRAINT ck_positions_shares_gte_0    CHECK (shares >= 0),
            CONSTRAINT ck_positions_avg_price_gte_0 CHECK (avg_price >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_positions_user ON positions (user_id);")
    op.execute("CREATE INDEX idx_positions_market ON positions (market_id);")
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION em_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE positions IS 'One row per user per outcome; zero-share rows are kept';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
