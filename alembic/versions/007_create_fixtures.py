"""007: create fixtures table

Revision ID: 007
Revises: 006
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE fixtures (
            id                  SERIAL          PRIMARY KEY,
            home_team_id        INT             NOT NULL REFERENCES teams (id),
            away_team_id        INT             NOT NULL REFERENCES teams (id),
            kickoff_at          TIMESTAMPTZ     NOT NULL,
            buy_close_at        TIMESTAMPTZ     NOT NULL,
            status              VARCHAR(20)     NOT NULL DEFAULT 'scheduled',
            result              VARCHAR(20)     NOT NULL DEFAULT 'pending',
            home_score          INT,
            away_score          INT,
            snapshot_home_cap   BIGINT,
            snapshot_away_cap   BIGINT,
            created_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_fixtures_distinct_teams   CHECK (home_team_id <> away_team_id),
            CONSTRAINT ck_fixtures_buy_close        CHECK (buy_close_at <= kickoff_at),
            CONSTRAINT ck_fixtures_status           CHECK (
                status IN ('scheduled', 'closed', 'applied', 'postponed')
            ),
            CONSTRAINT ck_fixtures_result           CHECK (
                result IN ('home_win', 'away_win', 'draw', 'pending')
            ),
            CONSTRAINT ck_fixtures_scores_gte_0     CHECK (
                (home_score IS NULL OR home_score >= 0) AND (away_score IS NULL OR away_score >= 0)
            ),
            CONSTRAINT ck_fixtures_applied_final    CHECK (
                status <> 'applied' OR result <> 'pending'
            )
        );
    """)
    op.execute("CREATE INDEX idx_fixtures_home ON fixtures (home_team_id, kickoff_at);")
    op.execute("CREATE INDEX idx_fixtures_away ON fixtures (away_team_id, kickoff_at);")
    op.execute("""
        CREATE TRIGGER trg_fixtures_updated_at
            BEFORE UPDATE ON fixtures
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS fixtures CASCADE;")
