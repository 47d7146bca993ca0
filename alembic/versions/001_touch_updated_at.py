"""001: updated_at trigger function

Mutable tables (users, markets, outcomes, positions) attach
em_touch_updated_at() as a BEFORE UPDATE row trigger, so balance, price and
share changes always refresh updated_at even when the writing statement
does not set it.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_TOUCH_FN = """
    CREATE OR REPLACE FUNCTION em_touch_updated_at()
    RETURNS TRIGGER
    LANGUAGE plpgsql
    AS $body$
    BEGIN
        -- transactions and price_history are append-only and never attach this
        NEW.updated_at := clock_timestamp();
        RETURN NEW;
    END;
    $body$;
"""


def upgrade() -> None:
    op.execute(_TOUCH_FN)


def downgrade() -> None:
    op.execute("DROP FUNCTION IF EXISTS em_touch_updated_at();")
