"""Global enums: must match DB CHECK constraints exactly."""

from enum import Enum


class OrderType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    # Settlement only ever writes FILLED; the others exist for schema compatibility.
    PENDING = "PENDING"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


class LedgerType(str, Enum):
    SHARE_PURCHASE = "share_purchase"
    SHARE_SALE = "share_sale"
    MATCH_WIN = "match_win"
    MATCH_LOSS = "match_loss"
    MATCH_DRAW = "match_draw"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class TriggerEventType(str, Enum):
    ORDER = "order"
    FIXTURE = "fixture"
    ADMIN = "admin"


class FixtureStatus(str, Enum):
    SCHEDULED = "scheduled"
    CLOSED = "closed"
    APPLIED = "applied"
    POSTPONED = "postponed"


class FixtureResult(str, Enum):
    HOME_WIN = "home_win"
    AWAY_WIN = "away_win"
    DRAW = "draw"
    PENDING = "pending"


class WalletTransactionType(str, Enum):
    DEPOSIT = "deposit"
    PURCHASE = "purchase"
    SALE = "sale"
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    CREDIT_LOAN = "credit_loan"
    CREDIT_LOAN_REVERSAL = "credit_loan_reversal"
