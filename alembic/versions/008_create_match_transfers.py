"""008: create match_transfers table

Revision ID: 008
Revises: 007
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE match_transfers (
            id                  BIGSERIAL       PRIMARY KEY,
            fixture_id          INT             NOT NULL REFERENCES fixtures (id),
            winner_team_id      INT             NOT NULL REFERENCES teams (id),
            loser_team_id       INT             NOT NULL REFERENCES teams (id),
            nominal_amount      BIGINT          NOT NULL,
            transfer_amount     BIGINT          NOT NULL,
            floor_shortfall     BIGINT          NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_match_transfers_fixture   UNIQUE (fixture_id),
            CONSTRAINT ck_match_transfers_amounts   CHECK (
                transfer_amount >= 0 AND transfer_amount <= nominal_amount
            ),
            CONSTRAINT ck_match_transfers_shortfall CHECK (
                floor_shortfall = nominal_amount - transfer_amount
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_match_transfers_append_only
            BEFORE UPDATE OR DELETE ON match_transfers
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS match_transfers CASCADE;")
