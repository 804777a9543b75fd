"""006: create team_ledger table

Revision ID: 006
Revises: 005
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE team_ledger (
            id                          BIGSERIAL       PRIMARY KEY,
            team_id                     INT             NOT NULL REFERENCES teams (id),
            ledger_type                 VARCHAR(30)     NOT NULL,
            market_cap_before           BIGINT          NOT NULL,
            market_cap_after            BIGINT          NOT NULL,
            share_price_before          BIGINT          NOT NULL,
            share_price_after           BIGINT          NOT NULL,
            shares_outstanding_before   INT             NOT NULL,
            shares_outstanding_after    INT             NOT NULL,
            amount                      BIGINT          NOT NULL DEFAULT 0,
            price_impact                BIGINT          NOT NULL DEFAULT 0,
            trigger_event_type          VARCHAR(20),
            trigger_event_id            VARCHAR(64),
            opponent_team_id            INT             REFERENCES teams (id),
            match_score                 VARCHAR(20),
            event_description           TEXT,
            created_by                  VARCHAR(64)     NOT NULL DEFAULT 'system',
            created_at                  TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_team_ledger_type CHECK (
                ledger_type IN ('share_purchase', 'share_sale', 'match_win',
                                'match_loss', 'match_draw', 'manual_adjustment')
            ),
            CONSTRAINT ck_team_ledger_trigger_type CHECK (
                trigger_event_type IS NULL OR trigger_event_type IN ('order', 'fixture', 'admin')
            ),
            CONSTRAINT ck_team_ledger_caps_gte_0 CHECK (
                market_cap_before >= 0 AND market_cap_after >= 0
            )
        );
    """)
    op.execute("CREATE INDEX idx_team_ledger_team ON team_ledger (team_id, id);")
    # At most one entry per team per fixture: a replayed match fails the insert.
    op.execute("""
        CREATE UNIQUE INDEX uq_team_ledger_fixture_team
        ON team_ledger (trigger_event_type, trigger_event_id, team_id)
        WHERE trigger_event_type = 'fixture';
    """)
    op.execute("""
        CREATE TRIGGER trg_team_ledger_append_only
            BEFORE UPDATE OR DELETE ON team_ledger
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE team_ledger IS 'Append-only valuation history per team';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS team_ledger CASCADE;")
