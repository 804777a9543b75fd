"""Pydantic schemas and cursor utilities for fm_wallet API."""

import base64
import binascii
import json

from pydantic import BaseModel, Field

from src.fm_common.cents import cents_to_display
from src.fm_wallet.domain.models import WalletTransaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreditWalletRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, description="Amount to credit in cents")
    reference: str | None = Field(None, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    balance_cents: int
    balance_display: str

    @classmethod
    def from_cents(cls, user_id: str, balance: int) -> "BalanceResponse":
        return cls(
            user_id=user_id,
            balance_cents=balance,
            balance_display=cents_to_display(balance),
        )


class CreditResponse(BaseModel):
    user_id: str
    tx_type: str
    balance_cents: int
    balance_display: str
    credited_cents: int
    credited_display: str
    transaction_id: int

    @classmethod
    def from_result(
        cls, user_id: str, tx_type: str, balance: int, amount: int, tx_id: int
    ) -> "CreditResponse":
        return cls(
            user_id=user_id,
            tx_type=tx_type,
            balance_cents=balance,
            balance_display=cents_to_display(balance),
            credited_cents=amount,
            credited_display=cents_to_display(amount),
            transaction_id=tx_id,
        )


class ReversalResponse(BaseModel):
    user_id: str
    balance_cents: int
    balance_display: str
    reversed_cents: int
    reversed_display: str
    loan_transaction_id: int
    transaction_id: int

    @classmethod
    def from_result(
        cls, user_id: str, balance: int, amount: int, loan_tx_id: int, tx_id: int
    ) -> "ReversalResponse":
        return cls(
            user_id=user_id,
            balance_cents=balance,
            balance_display=cents_to_display(balance),
            reversed_cents=amount,
            reversed_display=cents_to_display(amount),
            loan_transaction_id=loan_tx_id,
            transaction_id=tx_id,
        )


class WalletTransactionItem(BaseModel):
    id: int
    tx_type: str
    amount_cents: int
    amount_display: str
    balance_after_cents: int
    balance_after_display: str
    reference_type: str | None
    reference_id: str | None
    description: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, tx: WalletTransaction) -> "WalletTransactionItem":
        return cls(
            id=tx.id,
            tx_type=tx.tx_type,
            amount_cents=tx.amount,
            amount_display=cents_to_display(tx.amount),
            balance_after_cents=tx.balance_after,
            balance_after_display=cents_to_display(tx.balance_after),
            reference_type=tx.reference_type,
            reference_id=tx.reference_id,
            description=tx.description,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class WalletTransactionsResponse(BaseModel):
    items: list[WalletTransactionItem]
    next_cursor: str | None
    has_more: bool
