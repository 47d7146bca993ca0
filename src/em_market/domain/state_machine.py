"""Market status state machine.

    OPEN <-> LOCKED      admin toggle, reversible
    OPEN | LOCKED -> RESOLVED   settlement only
    OPEN | LOCKED -> CANCELLED  admin, reserved
    RESOLVED, CANCELLED  terminal

Trading is allowed only while OPEN.
"""

from src.em_common.enums import MarketStatus
from src.em_common.errors import InvalidTransitionError

_TRANSITIONS: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.OPEN: frozenset(
        {MarketStatus.LOCKED, MarketStatus.RESOLVED, MarketStatus.CANCELLED}
    ),
    MarketStatus.LOCKED: frozenset(
        {MarketStatus.OPEN, MarketStatus.RESOLVED, MarketStatus.CANCELLED}
    ),
    MarketStatus.RESOLVED: frozenset(),
    MarketStatus.CANCELLED: frozenset(),
}

# Targets reachable through the admin status endpoint; RESOLVED goes through settlement.
ADMIN_TARGETS = frozenset({MarketStatus.OPEN, MarketStatus.LOCKED})


def is_terminal(status: MarketStatus) -> bool:
    return not _TRANSITIONS[status]


def is_tradable(status: MarketStatus) -> bool:
    return status == MarketStatus.OPEN


def can_transition(current: MarketStatus, target: MarketStatus) -> bool:
    return target in _TRANSITIONS[current]


def check_admin_transition(current: MarketStatus, target: MarketStatus) -> bool:
    """Validate an admin status change.

    Returns False when ``target`` equals ``current`` (a no-op), True when the
    row must be updated. Raises InvalidTransitionError otherwise.
    """
    if target not in ADMIN_TARGETS or is_terminal(current):
        raise InvalidTransitionError(current.value, target.value)
    if target == current:
        return False
    if not can_transition(current, target):
        raise InvalidTransitionError(current.value, target.value)
    return True
