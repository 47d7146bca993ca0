"""Global enums. Values must match the DB CHECK constraints exactly."""

from enum import Enum


class MarketStatus(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    RESOLVED = "RESOLVED"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    INTERN = "INTERN"
    FULL_TIME = "FULL_TIME"


class TradeDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class TransactionType(str, Enum):
    # Trading
    BUY = "BUY"
    SELL = "SELL"
    # Settlement payout (winners only)
    SETTLEMENT = "SETTLEMENT"
    # Admin point grant (may be negative)
    ADMIN_ADD = "ADMIN_ADD"
    # Written by periodic jobs; excluded from airdrop eligibility
    DAILY_COST = "DAILY_COST"
    AIRDROP = "AIRDROP"


class EventMode(str, Enum):
    NONE = "NONE"
    TURBULENCE = "A"      # volatility x2
    TAX_HOLIDAY = "B"     # daily cost suspended
    AIRDROP_ARMED = "C"   # airdrop enabled
    FOG = "D"             # display hides prices


class HistoryRange(str, Enum):
    ONE_HOUR = "1H"
    SIX_HOURS = "6H"
    ONE_DAY = "1D"
    ONE_WEEK = "1W"
    ALL = "ALL"
