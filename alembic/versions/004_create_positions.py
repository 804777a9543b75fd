"""004: create positions table

Revision ID: 004
Revises: 003
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE positions (
            id              BIGSERIAL       PRIMARY KEY,
            user_id         VARCHAR(64)     NOT NULL,
            team_id         INT             NOT NULL REFERENCES teams (id),
            quantity        INT             NOT NULL,
            total_invested  BIGINT          NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_positions_user_team       UNIQUE (user_id, team_id),
            CONSTRAINT ck_positions_quantity_gt_0   CHECK (quantity > 0),
            CONSTRAINT ck_positions_invested_gte_0  CHECK (total_invested >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_positions_team ON positions (team_id);")
    op.execute("""
        CREATE TRIGGER trg_positions_updated_at
            BEFORE UPDATE ON positions
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE positions IS 'Open holdings; a row is deleted when its quantity reaches zero';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS positions CASCADE;")
