"""Repository Protocols for wallets.

Mutation and read access are separate capabilities: only the settlement
service and the wallet service receive a WalletLedgerProtocol; everything
else reads balances through WalletReaderProtocol.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fm_wallet.domain.models import Wallet, WalletTransaction


class WalletReaderProtocol(Protocol):
    async def get_wallet(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        cursor_id: int | None,
        limit: int,
        tx_type: str | None,
    ) -> list[WalletTransaction]: ...

    async def get_transaction(
        self, db: AsyncSession, transaction_id: int, for_update: bool = False
    ) -> WalletTransaction | None: ...

    async def find_reversal(
        self, db: AsyncSession, transaction_id: int
    ) -> WalletTransaction | None:
        """Return the credit_loan_reversal row that reverses `transaction_id`, if any."""
        ...


class WalletLedgerProtocol(Protocol):
    async def open_wallet(self, db: AsyncSession, user_id: str) -> Wallet: ...

    async def debit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Wallet, WalletTransaction]: ...

    async def credit(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        tx_type: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        description: str | None = None,
    ) -> tuple[Wallet, WalletTransaction]: ...
