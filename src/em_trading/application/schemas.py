"""Pydantic schemas for em_trading API."""

from pydantic import BaseModel, Field

from src.em_common.energy import energy_to_display
from src.em_common.enums import TradeDirection


class BuyRequest(BaseModel):
    market_id: str
    outcome_id: str
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Energy to spend")


class SellRequest(BaseModel):
    market_id: str
    outcome_id: str
    shares: float = Field(..., gt=0, allow_inf_nan=False, description="Shares to sell")


class TradeReceipt(BaseModel):
    """Result of one executed buy or sell.

    With ``prices_hidden`` set (fog), every field that would reveal the
    execution price is None: the price itself, the position's average price,
    and whichever side of the trade was derived from the price (shares on a
    buy, proceeds on a sell).
    """

    direction: str
    market_id: str
    outcome_id: str
    amount: float | None             # BUY: energy spent; SELL: proceeds received
    shares: float | None             # BUY: shares acquired; SELL: shares sold
    execution_price: float | None    # also the outcome's new price
    balance_after: float
    balance_after_display: str
    position_shares: float
    position_avg_price: float | None
    transaction_id: int
    prices_hidden: bool = False

    @classmethod
    def build(
        cls,
        direction: str,
        market_id: str,
        outcome_id: str,
        amount: float,
        shares: float,
        execution_price: float,
        balance_after: float,
        position_shares: float,
        position_avg_price: float,
        transaction_id: int,
        hide_prices: bool = False,
    ) -> "TradeReceipt":
        if hide_prices:
            execution_price = None
            position_avg_price = None
            if direction == TradeDirection.BUY.value:
                shares = None
            else:
                amount = None
        return cls(
            direction=direction,
            market_id=market_id,
            outcome_id=outcome_id,
            amount=amount,
            shares=shares,
            execution_price=execution_price,
            balance_after=balance_after,
            balance_after_display=energy_to_display(balance_after),
            position_shares=position_shares,
            position_avg_price=position_avg_price,
            transaction_id=transaction_id,
            prices_hidden=hide_prices,
        )
