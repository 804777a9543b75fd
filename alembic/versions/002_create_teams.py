"""002: create teams table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE teams (
            id                  SERIAL          PRIMARY KEY,
            name                VARCHAR(100)    NOT NULL,
            market_cap          BIGINT          NOT NULL,
            total_shares        INT             NOT NULL,
            available_shares    INT             NOT NULL,
            is_tradeable        BOOLEAN         NOT NULL DEFAULT TRUE,
            launch_price        BIGINT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_teams_name                UNIQUE (name),
            CONSTRAINT ck_teams_market_cap_gte_0    CHECK (market_cap >= 0),
            CONSTRAINT ck_teams_total_shares_gt_0   CHECK (total_shares > 0),
            CONSTRAINT ck_teams_available_range     CHECK (
                available_shares >= 0 AND available_shares <= total_shares
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_teams_updated_at
            BEFORE UPDATE ON teams
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE teams IS 'Current market state per club: valuation and share pool';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS teams CASCADE;")
