"""Pydantic schemas for admin endpoints."""

from pydantic import BaseModel, Field

from config.settings import settings
from src.em_common.enums import EventMode
from src.em_common.system_config import SystemConfig


class AddPointsRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=20)
    points: float = Field(..., allow_inf_nan=False, description="May be negative")


class ResetUserRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=20)
    new_balance: float | None = Field(
        None, allow_inf_nan=False, description="Leave unset to keep the balance"
    )


class AirdropRequest(BaseModel):
    amount: float = Field(settings.AIRDROP_DEFAULT_AMOUNT, gt=0, allow_inf_nan=False)


class UpdateSystemConfigRequest(BaseModel):
    notification: str | None = Field(None, max_length=1000)
    event_mode: EventMode | None = None


class SystemConfigResponse(BaseModel):
    notification: str
    event_mode: EventMode

    @classmethod
    def from_domain(cls, config: SystemConfig) -> "SystemConfigResponse":
        return cls(notification=config.notification, event_mode=config.event_mode)
