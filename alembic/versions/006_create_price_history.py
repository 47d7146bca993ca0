"""006: create price_history table

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE price_history (
            id              BIGSERIAL           PRIMARY KEY,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets (id),
            outcome_id      VARCHAR(64)         NOT NULL REFERENCES outcomes (id),
            price           DOUBLE PRECISION    NOT NULL,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_price_history_market_time ON price_history (market_id, created_at);")
    op.execute("COMMENT ON TABLE price_history IS 'Append-only snapshot of every outcome after each trade';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS price_history CASCADE;")
