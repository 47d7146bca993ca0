"""SystemConfig value object — the admin-controlled process-wide switches.

Read once per operation from the config store and passed explicitly into the
pricing model and periodic operations; never held as a module-level global.
"""

from dataclasses import dataclass

from src.em_common.enums import EventMode


@dataclass(frozen=True)
class SystemConfig:
    notification: str = ""
    event_mode: EventMode = EventMode.NONE

    @property
    def is_turbulent(self) -> bool:
        return self.event_mode == EventMode.TURBULENCE

    @property
    def is_tax_holiday(self) -> bool:
        return self.event_mode == EventMode.TAX_HOLIDAY

    @property
    def is_airdrop_armed(self) -> bool:
        return self.event_mode == EventMode.AIRDROP_ARMED

    @property
    def hides_prices(self) -> bool:
        return self.event_mode == EventMode.FOG
