"""Pydantic schemas for periodic operations."""

from pydantic import BaseModel


class DailyCostResult(BaseModel):
    charged: int           # users debited
    failed: int            # users whose debit raised; see logs
    skipped: bool          # True when the run was suppressed (tax holiday)
    total_charged: float


class AirdropResult(BaseModel):
    recipients: int
    failed: int
    amount: float          # credited per recipient
