"""WalletRepository: implements both wallet Protocols.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
A result of 0 rows on debit means the balance was too low or the wallet is
missing; a follow-up SELECT tells the two apart.

Transaction ownership: the caller commits. Every mutation writes exactly one
wallet_transactions row in the same transaction.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.errors import (
    InsufficientFundsError,
    InternalError,
    InvalidAmountError,
    WalletNotFoundError,
)
from src.fm_wallet.domain.models import Wallet, WalletTransaction

_WALLET_COLUMNS = "id, user_id, balance, created_at, updated_at"

_TX_COLUMNS = """
    id, user_id, tx_type, amount, balance_after,
    reference_type, reference_id, description, created_at
"""

_GET_WALLET_SQL = text(f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE user_id = :user_id")

_OPEN_WALLET_SQL = text(f"""
    INSERT INTO wallets (user_id, balance)
    VALUES (:user_id, 0)
    ON CONFLICT (user_id) DO UPDATE
        SET updated_at = wallets.updated_at
    RETURNING {_WALLET_COLUMNS}
""")

_DEBIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance - :amount,
        updated_at = NOW()
    WHERE user_id = :user_id AND balance >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_CREDIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance + :amount,
        updated_at = NOW()
    WHERE user_id = :user_id
    RETURNING {_WALLET_COLUMNS}
""")

_INSERT_TX_SQL = text(f"""
    INSERT INTO wallet_transactions
        (user_id, tx_type, amount, balance_after,
         reference_type, reference_id, description)
    VALUES
        (:user_id, :tx_type, :amount, :balance_after,
         :reference_type, :reference_id, :description)
    RETURNING {_TX_COLUMNS}
""")

_GET_TX_SQL = text(f"SELECT {_TX_COLUMNS} FROM wallet_transactions WHERE id = :tx_id")

_GET_TX_FOR_UPDATE_SQL = text(
    f"SELECT {_TX_COLUMNS} FROM wallet_transactions WHERE id = :tx_id FOR UPDATE"
)

_FIND_REVERSAL_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE tx_type = 'credit_loan_reversal' AND reference_id = :reference_id
    LIMIT 1
""")

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM wallet_transactions
    WHERE user_id = :user_id
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
      AND (CAST(:tx_type AS TEXT) IS NULL OR tx_type = CAST(:tx_type AS TEXT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_wallet(row: object) -> Wallet:
    return Wallet(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        balance=row.balance,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_tx(row: object) -> WalletTransaction:
    return WalletTransaction(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        tx_type=row.tx_type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        balance_after=row.balance_after,  # type: ignore[attr-defined]
        reference_type=row.reference_type,  # type: ignore[attr-defined]
        reference_id=row.reference_id,  # type: ignore[attr-defined]
        description=row.description,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class WalletRepository:
    """Concrete repository: all operations atomic at the SQL level."""

    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None:
        result = await db.execute(_GET_WALLET_SQL, {"user_id": user_id})
        row = result.fetchone()
        return _row_to_wallet(row) if row else None

    async def open_wallet(self, db: AsyncSession, user_id: str) -> Wallet:
        result = await db.execute(_OPEN_WALLET_SQL, {"user_id": user_id})
        row = result.fetchone()
        if row is None:
            raise InternalError(f"Wallet upsert returned no rows for user {user_id}")
        return _row_to_wallet(row)

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Wallet, WalletTransaction]:
        if amount <= 0:
            raise InvalidAmountError(amount)
        result = await db.execute(_DEBIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            existing = await self.get_wallet(db, user_id)
            if existing is None:
                raise WalletNotFoundError(user_id)
            raise InsufficientFundsError(amount, existing.balance)
        wallet = _row_to_wallet(row)
        tx = await self._record(
            db, wallet, -amount, tx_type, reference_type, reference_id, description
        )
        return wallet, tx

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Wallet, WalletTransaction]:
        if amount <= 0:
            raise InvalidAmountError(amount)
        result = await db.execute(_CREDIT_SQL, {"user_id": user_id, "amount": amount})
        row = result.fetchone()
        if row is None:
            raise WalletNotFoundError(user_id)
        wallet = _row_to_wallet(row)
        tx = await self._record(
            db, wallet, amount, tx_type, reference_type, reference_id, description
        )
        return wallet, tx

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[WalletTransaction]:
        result = await db.execute(
            _LIST_TX_SQL,
            {"user_id": user_id, "cursor_id": cursor_id, "tx_type": tx_type, "limit": limit},
        )
        return [_row_to_tx(row) for row in result.fetchall()]

    async def get_transaction(
        self, db: AsyncSession, transaction_id: int, for_update: bool = False
    ) -> WalletTransaction | None:
        sql = _GET_TX_FOR_UPDATE_SQL if for_update else _GET_TX_SQL
        result = await db.execute(sql, {"tx_id": transaction_id})
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def find_reversal(
        self, db: AsyncSession, transaction_id: int
    ) -> WalletTransaction | None:
        result = await db.execute(_FIND_REVERSAL_SQL, {"reference_id": str(transaction_id)})
        row = result.fetchone()
        return _row_to_tx(row) if row else None

    async def _record(
        self,
        db: AsyncSession,
        wallet: Wallet,
        signed_amount: int,
        tx_type: str,
        reference_type: str | None,
        reference_id: str | None,
        description: str | None,
    ) -> WalletTransaction:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "user_id": wallet.user_id,
                "tx_type": tx_type,
                "amount": signed_amount,
                "balance_after": wallet.balance,
                "reference_type": reference_type,
                "reference_id": reference_id,
                "description": description,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Wallet transaction insert returned no rows")
        return _row_to_tx(row)
