"""WalletApplicationService: balance reads and admin credits.

Deposits, credit loans and loan reversals are each their own transaction;
purchases and sales move money only inside the settlement transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_common.enums import WalletTransactionType
from src.fm_common.errors import (
    CreditLoanAlreadyReversedError,
    CreditLoanNotFoundError,
    WalletNotFoundError,
)
from src.fm_wallet.application.schemas import (
    BalanceResponse,
    CreditResponse,
    ReversalResponse,
    WalletTransactionItem,
    WalletTransactionsResponse,
    cursor_decode,
    cursor_encode,
)
from src.fm_wallet.domain.repository import WalletLedgerProtocol, WalletReaderProtocol
from src.fm_wallet.infrastructure.persistence import WalletRepository

logger = logging.getLogger(__name__)


class WalletApplicationService:
    def __init__(
        self,
        ledger: WalletLedgerProtocol | None = None,
        reader: WalletReaderProtocol | None = None,
    ) -> None:
        repo = WalletRepository()
        self._ledger: WalletLedgerProtocol = ledger or repo
        self._reader: WalletReaderProtocol = reader or repo

    async def get_balance(self, db: AsyncSession, user_id: str) -> BalanceResponse:
        wallet = await self._reader.get_wallet(db, user_id)
        if wallet is None:
            raise WalletNotFoundError(user_id)
        return BalanceResponse.from_cents(user_id=user_id, balance=wallet.balance)

    async def deposit(
        self,
        db: AsyncSession,
        user_id: str,
        amount_cents: int,
        reference: str | None = None,
    ) -> CreditResponse:
        return await self._credit(
            db, user_id, amount_cents, WalletTransactionType.DEPOSIT, reference
        )

    async def credit_loan(
        self,
        db: AsyncSession,
        user_id: str,
        amount_cents: int,
        reference: str | None = None,
    ) -> CreditResponse:
        return await self._credit(
            db, user_id, amount_cents, WalletTransactionType.CREDIT_LOAN, reference
        )

    async def reverse_credit_loan(
        self, db: AsyncSession, transaction_id: int
    ) -> ReversalResponse:
        """Claw back a credit loan by debiting its full amount.

        The loan row is locked so concurrent reversals of the same loan
        serialise; the second one sees the first's reversal row and fails.
        Fails with InsufficientFundsError when the user has already spent
        part of the loan.
        """
        try:
            loan = await self._reader.get_transaction(db, transaction_id, for_update=True)
            if loan is None or loan.tx_type != WalletTransactionType.CREDIT_LOAN.value:
                raise CreditLoanNotFoundError(transaction_id)
            if await self._reader.find_reversal(db, transaction_id) is not None:
                raise CreditLoanAlreadyReversedError(transaction_id)
            wallet, tx = await self._ledger.debit(
                db,
                loan.user_id,
                loan.amount,
                WalletTransactionType.CREDIT_LOAN_REVERSAL.value,
                reference_type=WalletTransactionType.CREDIT_LOAN.value,
                reference_id=str(transaction_id),
                description=f"Reversal of credit loan {transaction_id}",
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Credit loan reversed: loan_tx=%d user=%s amount=%d balance=%d",
            transaction_id,
            loan.user_id,
            loan.amount,
            wallet.balance,
        )
        return ReversalResponse.from_result(
            user_id=loan.user_id,
            balance=wallet.balance,
            amount=loan.amount,
            loan_tx_id=transaction_id,
            tx_id=tx.id,
        )

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor: str | None,
        limit: int,
        tx_type: str | None,
    ) -> WalletTransactionsResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        txs = await self._reader.list_transactions(db, user_id, cursor_id, limit + 1, tx_type)
        has_more = len(txs) > limit
        page = txs[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return WalletTransactionsResponse(
            items=[WalletTransactionItem.from_domain(t) for t in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    async def _credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount_cents: int,
        tx_type: WalletTransactionType,
        reference: str | None,
    ) -> CreditResponse:
        try:
            await self._ledger.open_wallet(db, user_id)
            wallet, tx = await self._ledger.credit(
                db,
                user_id,
                amount_cents,
                tx_type.value,
                reference_type=tx_type.value,
                reference_id=reference,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Wallet credited: user=%s type=%s amount=%d balance=%d",
            user_id,
            tx_type.value,
            amount_cents,
            wallet.balance,
        )
        return CreditResponse.from_result(
            user_id=user_id,
            tx_type=tx_type.value,
            balance=wallet.balance,
            amount=amount_cents,
            tx_id=tx.id,
        )
