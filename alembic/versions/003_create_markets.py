"""003: create markets and outcomes tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id                  VARCHAR(64)         PRIMARY KEY,
            question            TEXT                NOT NULL,
            description         TEXT                NOT NULL DEFAULT '',
            status              VARCHAR(20)         NOT NULL DEFAULT 'OPEN',
            end_date            TIMESTAMPTZ,
            total_volume        DOUBLE PRECISION    NOT NULL DEFAULT 0,
            winning_outcome_id  VARCHAR(64),
            final_price         DOUBLE PRECISION,
            resolved_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_status CHECK (status IN ('OPEN', 'LOCKED', 'RESOLVED', 'CANCELLED')),
            CONSTRAINT ck_markets_total_volume_gte_0 CHECK (total_volume >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_markets_status ON markets (status);")
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION em_touch_updated_at();
    """)

    op.execute("""
        CREATE TABLE outcomes (
            id              VARCHAR(64)         PRIMARY KEY,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets (id),
            name            VARCHAR(128)        NOT NULL,
            description     TEXT                NOT NULL DEFAULT '',
            price           DOUBLE PRECISION    NOT NULL,
            volume          DOUBLE PRECISION    NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_outcomes_market_name  UNIQUE (market_id, name),
            CONSTRAINT ck_outcomes_price_range  CHECK (price >= 0.01 AND price <= 0.99),
            CONSTRAINT ck_outcomes_volume_gte_0 CHECK (volume >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_outcomes_market ON outcomes (market_id);")
    op.execute("""
        CREATE TRIGGER trg_outcomes_updated_at
            BEFORE UPDATE ON outcomes
            FOR EACH ROW EXECUTE FUNCTION em_touch_updated_at();
    """)
    op.execute("""
        ALTER TABLE markets
            ADD CONSTRAINT fk_markets_winning_outcome
            FOREIGN KEY (winning_outcome_id) REFERENCES outcomes (id)
            DEFERRABLE INITIALLY DEFERRED;
    """)
    op.execute("COMMENT ON TABLE outcomes IS 'Independently priced outcomes; initial price 1/N, no cross-outcome normalisation';")


def downgrade() -> None:
    op.execute("ALTER TABLE markets DROP CONSTRAINT IF EXISTS fk_markets_winning_outcome;")
    op.execute("DROP TABLE IF EXISTS outcomes CASCADE;")
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
