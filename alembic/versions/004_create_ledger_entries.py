"""004: create ledger_entries table

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
        CREATE TABLE ledger_entries (
            id              BIGSERIAL       PRIMARY KEY,
            listing_id      BIGINT          REFERENCES listings (id),
            payer_id        BIGINT          REFERENCES accounts (id),
            receiver_id     BIGINT          NOT NULL REFERENCES accounts (id),
            amount_cents    BIGINT          NOT NULL,
            quantity        INTEGER,
            transacted_at   TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_ledger_purchase_shape CHECK (
                (listing_id IS NULL AND quantity IS NULL)
                OR (listing_id IS NOT NULL AND quantity > 0 AND payer_id IS NOT NULL)
            ),
            CONSTRAINT ck_ledger_amount_sign CHECK (
                payer_id IS NULL OR amount_cents > 0
            )
        );
    """)
    op.execute("CREATE INDEX idx_ledger_payer ON ledger_entries (payer_id, id DESC);")
    op.execute("CREATE INDEX idx_ledger_receiver ON ledger_entries (receiver_id, id DESC);")
    op.execute("COMMENT ON TABLE ledger_entries IS 'Append-only; payer_id NULL = admin adjustment; amounts in cents';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS ledger_entries CASCADE;")
