"""005: create orders table

Revision ID: 005
Revises: 004
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE orders (
            id                          VARCHAR(64)     PRIMARY KEY,
            user_id                     VARCHAR(64)     NOT NULL,
            team_id                     INT             NOT NULL REFERENCES teams (id),
            order_type                  VARCHAR(10)     NOT NULL,
            quantity                    INT             NOT NULL,
            price_per_share             BIGINT          NOT NULL,
            total_amount                BIGINT          NOT NULL,
            cost_basis                  BIGINT          NOT NULL,
            market_cap_before           BIGINT          NOT NULL,
            market_cap_after            BIGINT          NOT NULL,
            shares_outstanding_before   INT             NOT NULL,
            shares_outstanding_after    INT             NOT NULL,
            status                      VARCHAR(20)     NOT NULL DEFAULT 'FILLED',
            executed_at                 TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_orders_order_type     CHECK (order_type IN ('BUY', 'SELL')),
            CONSTRAINT ck_orders_quantity       CHECK (quantity > 0),
            CONSTRAINT ck_orders_price_gte_0    CHECK (price_per_share >= 0),
            CONSTRAINT ck_orders_total          CHECK (total_amount = quantity * price_per_share),
            CONSTRAINT ck_orders_cost_basis     CHECK (cost_basis >= 0),
            CONSTRAINT ck_orders_status         CHECK (status IN ('PENDING', 'FILLED', 'CANCELLED'))
        );
    """)
    op.execute("CREATE INDEX idx_orders_user ON orders (user_id, executed_at);")
    op.execute("CREATE INDEX idx_orders_team ON orders (team_id, executed_at);")
    op.execute("""
        CREATE TRIGGER trg_orders_append_only
            BEFORE UPDATE OR DELETE ON orders
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)
    op.execute("COMMENT ON TABLE orders IS 'Executed trades; snapshot columns are written once and never recomputed';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS orders CASCADE;")
