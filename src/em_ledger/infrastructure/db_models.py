"""SQLAlchemy ORM models for em_ledger.

These map to existing tables created by Alembic migrations.
DO NOT add/remove columns here without a corresponding migration.
"""

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Double,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.em_common.database import Base


class UserORM(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    username: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    balance: Mapped[float] = mapped_column(Double, nullable=False, default=0)
    role: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class PositionORM(Base):
    __tablename__ = "positions"
    __table_args__ = (UniqueConstraint("user_id", "outcome_id"),)

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    market_id: Mapped[str] = mapped_column(ForeignKey("markets.id"), nullable=False)
    outcome_id: Mapped[str] = mapped_column(ForeignKey("outcomes.id"), nullable=False)
    shares: Mapped[float] = mapped_column(Double, nullable=False, default=0)
    avg_price: Mapped[float] = mapped_column(Double, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class TransactionORM(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    market_id: Mapped[str | None] = mapped_column(ForeignKey("markets.id"), nullable=True)
    outcome_id: Mapped[str | None] = mapped_column(
        ForeignKey("outcomes.id"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Double, nullable=False)
    shares: Mapped[float] = mapped_column(Double, nullable=False, default=0)
    price: Mapped[float] = mapped_column(Double, nullable=False, default=0)
    balance_after: Mapped[float] = mapped_column(Double, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    # NOTE: No updated_at; transactions is append-only
