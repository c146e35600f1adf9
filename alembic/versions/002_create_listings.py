"""002: create listings table

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
        CREATE TABLE listings (
            id              BIGSERIAL       PRIMARY KEY,
            title           VARCHAR(50)     NOT NULL,
            description     VARCHAR(500)    NOT NULL DEFAULT '',
            price_cents     BIGINT          NOT NULL,
            stock           INTEGER         NOT NULL,
            seller_id       BIGINT          NOT NULL REFERENCES accounts (id),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_listings_price_range CHECK (price_cents BETWEEN 1 AND 1500),
            CONSTRAINT ck_listings_stock_gte_0 CHECK (stock >= 0)
        );
    """)
    op.execute("CREATE INDEX idx_listings_created ON listings (created_at DESC, id DESC);")
    op.execute("CREATE INDEX idx_listings_seller ON listings (seller_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS listings CASCADE;")
