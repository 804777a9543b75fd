"""Domain models for fm_wallet: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Wallet:
    user_id: str
    balance: int             # cents, never negative
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class WalletTransaction:
    id: int                          # BIGSERIAL
    user_id: str
    tx_type: str                     # WalletTransactionType value
    amount: int                      # cents, positive=credit negative=debit
    balance_after: int               # cents, balance snapshot after op
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
