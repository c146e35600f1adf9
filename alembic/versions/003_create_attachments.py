"""003: create attachments table

Revision ID: 003
Revises: 002
Create Date: 2026-10-18
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE attachments (
            id              BIGSERIAL       PRIMARY KEY,
            file_path       VARCHAR(255)    NOT NULL,
            thumbnail_path  VARCHAR(255)    NOT NULL,
            uploader_id     BIGINT          NOT NULL REFERENCES accounts (id),
            listing_id      BIGINT          REFERENCES listings (id),
            uploaded_at     TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_attachments_listing ON attachments (listing_id);")
    # Cleanup scans only unbound rows
    op.execute("""
        CREATE INDEX idx_attachments_dangling
        ON attachments (uploaded_at)
        WHERE listing_id IS NULL;
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS attachments CASCADE;")
