"""009: allow credit_loan_reversal wallet transactions

Revision ID: 009
Revises: 008
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "009"
down_revision: Union[str, None] = "008"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("ALTER TABLE wallet_transactions DROP CONSTRAINT ck_wallet_tx_type;")
    op.execute("""
        ALTER TABLE wallet_transactions ADD CONSTRAINT ck_wallet_tx_type CHECK (
            tx_type IN ('deposit', 'purchase', 'sale', 'refund', 'adjustment',
                        'credit_loan', 'credit_loan_reversal')
        );
    """)
    # A credit loan is reversed at most once; reference_id holds the loan's id.
    op.execute("""
        CREATE UNIQUE INDEX uq_wallet_tx_loan_reversal
            ON wallet_transactions (reference_id)
            WHERE tx_type = 'credit_loan_reversal';
    """)


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_wallet_tx_loan_reversal;")
    op.execute("ALTER TABLE wallet_transactions DROP CONSTRAINT ck_wallet_tx_type;")
    op.execute("""
        ALTER TABLE wallet_transactions ADD CONSTRAINT ck_wallet_tx_type CHECK (
            tx_type IN ('deposit', 'purchase', 'sale', 'refund', 'adjustment', 'credit_loan')
        );
    """)
