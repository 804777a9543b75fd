"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Caller identity
  2xxx: Wallet
  3xxx: Team / Fixture
  4xxx: Order
  5xxx: Position
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


# --- 1xxx: Caller identity ---

class AdminRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Admin role required", 403)


# --- 2xxx: Wallet ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient funds: required {required} cents, available {available} cents",
            422,
        )


class WalletNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Wallet not found for user {user_id}", 404)


class InvalidAmountError(AppError):
    def __init__(self, amount: int) -> None:
        super().__init__(2003, f"Amount must be positive, got {amount}", 422)


class CreditLoanNotFoundError(AppError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(2004, f"Credit loan transaction not found: {transaction_id}", 404)


class CreditLoanAlreadyReversedError(AppError):
    def __init__(self, transaction_id: int) -> None:
        super().__init__(2005, f"Credit loan {transaction_id} is already reversed", 409)


# --- 3xxx: Team / Fixture ---

class TeamNotFoundError(AppError):
    def __init__(self, team_id: int) -> None:
        super().__init__(3001, f"Team not found: {team_id}", 404)


class TeamNotTradeableError(AppError):
    def __init__(self, team_id: int, reason: str = "trading disabled") -> None:
        super().__init__(3002, f"Team {team_id} is not tradeable: {reason}", 422)


class MarketCapBelowFloorError(AppError):
    def __init__(self, market_cap: int, floor: int) -> None:
        super().__init__(
            3003,
            f"Market cap {market_cap} cents is below the platform floor of {floor} cents",
            422,
        )


class FixtureNotFoundError(AppError):
    def __init__(self, fixture_id: int) -> None:
        super().__init__(3101, f"Fixture not found: {fixture_id}", 404)


class FixtureResultPendingError(AppError):
    def __init__(self, fixture_id: int) -> None:
        super().__init__(3102, f"Fixture {fixture_id} has no final result", 422)


class InvalidFixtureTransitionError(AppError):
    def __init__(self, fixture_id: int, current: str, target: str) -> None:
        super().__init__(
            3103,
            f"Fixture {fixture_id} cannot move from {current} to {target}",
            422,
        )


class AlreadyAppliedError(AppError):
    """Reprocessing attempt on an applied fixture.

    SettlementService never raises this: a replay returns
    TransferResult(already_applied=True) so the result job stays idempotent.
    The code 3104 names that outcome for callers reporting it.
    """

    def __init__(self, fixture_id: int) -> None:
        super().__init__(3104, f"Fixture {fixture_id} already applied", 200)


class InvalidFixtureError(AppError):
    def __init__(self, reason: str) -> None:
        super().__init__(3105, f"Invalid fixture: {reason}", 422)


# --- 4xxx: Order ---

class PriceMismatchError(AppError):
    def __init__(self, expected: int, current: int) -> None:
        super().__init__(
            4001,
            f"Price mismatch: quoted {expected} cents, current {current} cents",
            409,
        )


class InvalidQuantityError(AppError):
    def __init__(self, quantity: int) -> None:
        super().__init__(4002, f"Invalid share quantity: {quantity}", 422)


class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


# --- 5xxx: Position ---

class InsufficientSharesError(AppError):
    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            5001,
            f"Insufficient shares: requested {requested}, available {available}",
            422,
        )


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class TransactionConflictError(AppError):
    def __init__(self, detail: str = "Concurrent modification, retry the operation") -> None:
        super().__init__(9003, detail, 409)
