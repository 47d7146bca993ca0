"""MarketRepository — concrete implementation of MarketRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.

Row locks: lock_market and lock_outcome take FOR UPDATE locks that are held
until the caller's transaction ends. Callers lock market before outcome.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_market.domain.models import Market, Outcome, PriceHistoryPoint

logger = logging.getLogger(__name__)

_MARKET_COLUMNS = (
    "id, question, description, status, end_date, total_volume, "
    "winning_outcome_id, final_price, resolved_at, created_at, updated_at"
)
_OUTCOME_COLUMNS = "id, market_id, name, description, price, volume, created_at"

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_INSERT_MARKET_SQL = text(f"""
    INSERT INTO markets (id, question, description, status, end_date, total_volume)
    VALUES (:id, :question, :description, :status, :end_date, 0)
    RETURNING {_MARKET_COLUMNS}
""")

_INSERT_OUTCOME_SQL = text(f"""
    INSERT INTO outcomes (id, market_id, name, description, price, volume)
    VALUES (:id, :market_id, :name, :description, :price, 0)
    RETURNING {_OUTCOME_COLUMNS}
""")

_GET_MARKET_SQL = text(f"SELECT {_MARKET_COLUMNS} FROM markets WHERE id = :market_id")

_LOCK_MARKET_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
    FOR UPDATE
""")

_LIST_MARKETS_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE CAST(:status AS TEXT) IS NULL OR status = CAST(:status AS TEXT)
    ORDER BY created_at DESC, id DESC
""")

_GET_OUTCOMES_SQL = text(f"""
    SELECT {_OUTCOME_COLUMNS}
    FROM outcomes
    WHERE market_id = :market_id
    ORDER BY name
""")

_GET_OUTCOMES_FOR_MARKETS_SQL = text(f"""
    SELECT {_OUTCOME_COLUMNS}
    FROM outcomes
    WHERE market_id IN :market_ids
    ORDER BY market_id, name
""").bindparams(bindparam("market_ids", expanding=True))

_LOCK_OUTCOME_SQL = text(f"""
    SELECT {_OUTCOME_COLUMNS}
    FROM outcomes
    WHERE id = :outcome_id AND market_id = :market_id
    FOR UPDATE
""")

_UPDATE_OUTCOME_SQL = text("""
    UPDATE outcomes
    SET price = :price,
        volume = volume + :volume,
        updated_at = NOW()
    WHERE id = :outcome_id AND market_id = :market_id
""")

_ADD_MARKET_VOLUME_SQL = text("""
    UPDATE markets
    SET total_volume = total_volume + :volume,
        updated_at = NOW()
    WHERE id = :market_id
""")

_SNAPSHOT_PRICES_SQL = text("""
    INSERT INTO price_history (market_id, outcome_id, price)
    SELECT market_id, id, price
    FROM outcomes
    WHERE market_id = :market_id
""")

_LIST_PRICE_HISTORY_SQL = text("""
    SELECT market_id, outcome_id, price, created_at
    FROM price_history
    WHERE market_id = :market_id
      AND (CAST(:since AS TIMESTAMPTZ) IS NULL OR created_at >= CAST(:since AS TIMESTAMPTZ))
    ORDER BY created_at, id
""")

_UPDATE_STATUS_SQL = text("""
    UPDATE markets
    SET status = :status,
        updated_at = NOW()
    WHERE id = :market_id
""")

_MARK_RESOLVED_SQL = text("""
    UPDATE markets
    SET status = 'RESOLVED',
        winning_outcome_id = :winning_outcome_id,
        final_price = :final_price,
        resolved_at = :resolved_at,
        updated_at = NOW()
    WHERE id = :market_id
""")

# Children before parents: transactions and positions reference outcomes,
# outcomes reference markets.
_DELETE_CASCADE_SQL = (
    ("transactions", text("DELETE FROM transactions WHERE market_id = :market_id")),
    ("positions", text("DELETE FROM positions WHERE market_id = :market_id")),
    ("price_history", text("DELETE FROM price_history WHERE market_id = :market_id")),
    ("outcomes", text("DELETE FROM outcomes WHERE market_id = :market_id")),
    ("markets", text("DELETE FROM markets WHERE id = :market_id")),
)

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_market(row: Any, outcomes: list[Outcome] | None = None) -> Market:
    return Market(
        id=row.id,
        question=row.question,
        description=row.description,
        status=row.status,
        end_date=row.end_date,
        total_volume=float(row.total_volume),
        winning_outcome_id=row.winning_outcome_id,
        final_price=float(row.final_price) if row.final_price is not None else None,
        resolved_at=row.resolved_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        outcomes=outcomes or [],
    )


def _row_to_outcome(row: Any) -> Outcome:
    return Outcome(
        id=row.id,
        market_id=row.market_id,
        name=row.name,
        description=row.description,
        price=float(row.price),
        volume=float(row.volume),
        created_at=row.created_at,
    )


class MarketRepository:
    async def insert_market(self, db: AsyncSession, market: Market) -> Market:
        """Insert the market and its outcomes; returns the stored rows."""
        row = (
            await db.execute(
                _INSERT_MARKET_SQL,
                {
                    "id": market.id,
                    "question": market.question,
                    "description": market.description,
                    "status": market.status,
                    "end_date": market.end_date,
                },
            )
        ).fetchone()
        outcomes = []
        for o in market.outcomes:
            outcome_row = (
                await db.execute(
                    _INSERT_OUTCOME_SQL,
                    {
                        "id": o.id,
                        "market_id": market.id,
                        "name": o.name,
                        "description": o.description,
                        "price": o.price,
                    },
                )
            ).fetchone()
            outcomes.append(_row_to_outcome(outcome_row))
        return _row_to_market(row, outcomes)

    async def _load_outcomes(self, db: AsyncSession, market_id: str) -> list[Outcome]:
        rows = (await db.execute(_GET_OUTCOMES_SQL, {"market_id": market_id})).fetchall()
        return [_row_to_outcome(r) for r in rows]

    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None:
        row = (await db.execute(_GET_MARKET_SQL, {"market_id": market_id})).fetchone()
        if row is None:
            return None
        return _row_to_market(row, await self._load_outcomes(db, market_id))

    async def lock_market(self, db: AsyncSession, market_id: str) -> Market | None:
        """SELECT ... FOR UPDATE on the market row; outcomes are read without locks."""
        row = (await db.execute(_LOCK_MARKET_SQL, {"market_id": market_id})).fetchone()
        if row is None:
            return None
        return _row_to_market(row, await self._load_outcomes(db, market_id))

    async def list_markets(self, db: AsyncSession, status: str | None) -> list[Market]:
        rows = (await db.execute(_LIST_MARKETS_SQL, {"status": status})).fetchall()
        if not rows:
            return []
        outcome_rows = (
            await db.execute(
                _GET_OUTCOMES_FOR_MARKETS_SQL, {"market_ids": [r.id for r in rows]}
            )
        ).fetchall()
        by_market: dict[str, list[Outcome]] = {}
        for r in outcome_rows:
            by_market.setdefault(r.market_id, []).append(_row_to_outcome(r))
        return [_row_to_market(r, by_market.get(r.id, [])) for r in rows]

    async def lock_outcome(
        self, db: AsyncSession, market_id: str, outcome_id: str
    ) -> Outcome | None:
        row = (
            await db.execute(
                _LOCK_OUTCOME_SQL, {"market_id": market_id, "outcome_id": outcome_id}
            )
        ).fetchone()
        return _row_to_outcome(row) if row else None

    async def apply_trade(
        self,
        db: AsyncSession,
        market_id: str,
        outcome_id: str,
        new_price: float,
        volume: float,
    ) -> None:
        """Set the outcome's new price and add ``volume`` to outcome and market totals."""
        await db.execute(
            _UPDATE_OUTCOME_SQL,
            {
                "market_id": market_id,
                "outcome_id": outcome_id,
                "price": new_price,
                "volume": volume,
            },
        )
        await db.execute(
            _ADD_MARKET_VOLUME_SQL, {"market_id": market_id, "volume": volume}
        )

    async def snapshot_prices(self, db: AsyncSession, market_id: str) -> int:
        """Append one price_history row per outcome of the market."""
        result = await db.execute(_SNAPSHOT_PRICES_SQL, {"market_id": market_id})
        return int(result.rowcount or 0)

    async def list_price_history(
        self, db: AsyncSession, market_id: str, since: datetime | None
    ) -> list[PriceHistoryPoint]:
        rows = (
            await db.execute(
                _LIST_PRICE_HISTORY_SQL, {"market_id": market_id, "since": since}
            )
        ).fetchall()
        return [
            PriceHistoryPoint(
                market_id=r.market_id,
                outcome_id=r.outcome_id,
                price=float(r.price),
                created_at=r.created_at,
            )
            for r in rows
        ]

    async def update_status(self, db: AsyncSession, market_id: str, status: str) -> None:
        await db.execute(_UPDATE_STATUS_SQL, {"market_id": market_id, "status": status})

    async def mark_resolved(
        self,
        db: AsyncSession,
        market_id: str,
        winning_outcome_id: str,
        final_price: float | None,
        resolved_at: datetime,
    ) -> None:
        await db.execute(
            _MARK_RESOLVED_SQL,
            {
                "market_id": market_id,
                "winning_outcome_id": winning_outcome_id,
                "final_price": final_price,
                "resolved_at": resolved_at,
            },
        )

    async def delete_market_cascade(self, db: AsyncSession, market_id: str) -> None:
        for table, sql in _DELETE_CASCADE_SQL:
            result = await db.execute(sql, {"market_id": market_id})
            logger.debug("Deleted %d %s rows for market %s", result.rowcount or 0, table, market_id)
