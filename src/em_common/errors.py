"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Request validation
  2xxx: User / balance
  3xxx: Market / outcome
  4xxx: Position
  5xxx: Settlement
  6xxx: Admin / system config
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Validation ---

class ValidationError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(1001, f"Invalid input: {detail}", 422)


# --- 2xxx: User / balance ---

class UserNotFoundError(AppError):
    def __init__(self, user_ref: str) -> None:
        super().__init__(2001, f"User not found: {user_ref}", 404)


class InsufficientBalanceError(AppError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            2002,
            f"Insufficient balance: required {required:.2f} E, available {available:.2f} E",
            422,
        )


class RoleAlreadyAssignedError(AppError):
    def __init__(self, role: str) -> None:
        super().__init__(2003, f"Role already assigned: {role}", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(2004, "Invalid or expired identity token", 401)


class UsernameTakenError(AppError):
    def __init__(self, username: str) -> None:
        super().__init__(2005, f"Username already belongs to another account: {username}", 409)


# --- 3xxx: Market / outcome ---

class MarketNotFoundError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(3001, f"Market not found: {market_id}", 404)


class OutcomeNotFoundError(AppError):
    def __init__(self, outcome_id: str, market_id: str) -> None:
        super().__init__(
            3002, f"Outcome {outcome_id} not found in market {market_id}", 404
        )


class MarketNotTradableError(AppError):
    def __init__(self, market_id: str, status: str) -> None:
        super().__init__(
            3003, f"Market {market_id} is not open for trading (status={status})", 422
        )


class InvalidTransitionError(AppError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            3004, f"Invalid market status transition: {current} -> {target}", 422
        )


# --- 4xxx: Position ---

class InsufficientSharesError(AppError):
    def __init__(self, required: float, available: float) -> None:
        super().__init__(
            4001,
            f"Insufficient shares: required {required:.4f}, available {available:.4f}",
            422,
        )


class PositionNotFoundError(AppError):
    def __init__(self, outcome_id: str) -> None:
        super().__init__(4004, f"No position held on outcome {outcome_id}", 404)


# --- 5xxx: Settlement ---

class AlreadySettledError(AppError):
    def __init__(self, market_id: str) -> None:
        super().__init__(5001, f"Market already settled: {market_id}", 409)


class InvalidOutcomeError(AppError):
    def __init__(self, outcome_id: str, market_id: str) -> None:
        super().__init__(
            5002, f"Outcome {outcome_id} does not belong to market {market_id}", 422
        )


# --- 6xxx: Admin / system config ---

class EventNotArmedError(AppError):
    def __init__(self, required_mode: str, current_mode: str) -> None:
        super().__init__(
            6001,
            f"Event mode {required_mode} required (current={current_mode})",
            409,
        )


class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(6002, "Admin privileges required", 403)


# --- 9xxx: System ---

class StorageFailureError(AppError):
    def __init__(self, detail: str = "Storage failure") -> None:
        super().__init__(9001, f"Storage failure: {detail}", 503)


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
