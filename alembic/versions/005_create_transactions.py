"""005: create transactions table

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              BIGSERIAL           PRIMARY KEY,
            user_id         VARCHAR(64)         NOT NULL REFERENCES users (id),
            market_id       VARCHAR(64)         REFERENCES markets (id),
            outcome_id      VARCHAR(64)         REFERENCES outcomes (id),
            type            VARCHAR(20)         NOT NULL,
            amount          DOUBLE PRECISION    NOT NULL,
            shares          DOUBLE PRECISION    NOT NULL DEFAULT 0,
            price           DOUBLE PRECISION    NOT NULL DEFAULT 0,
            balance_after   DOUBLE PRECISION    NOT NULL,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type CHECK (type IN (
                'BUY', 'SELL', 'SETTLEMENT', 'ADMIN_ADD', 'DAILY_COST', 'AIRDROP'
            ))
        );
    """)
    op.execute("CREATE INDEX idx_transactions_user_id ON transactions (user_id, id DESC);")
    op.execute("CREATE INDEX idx_transactions_market_id ON transactions (market_id, id DESC);")
    op.execute("CREATE INDEX idx_transactions_created_at ON transactions (created_at);")
    op.execute("COMMENT ON TABLE transactions IS 'Append-only; removed only by the market deletion cascade';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
