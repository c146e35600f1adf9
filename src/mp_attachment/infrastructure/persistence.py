"""AttachmentRepository: insert uploads and purge dangling rows.

Binding an attachment to a listing is not done here: that happens only inside
TransactionEngine.create_listing through LedgerStore.bind_attachments.
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.mp_common.errors import InternalError
from src.mp_ledger.domain.models import Attachment
from src.mp_ledger.infrastructure.persistence import row_to_attachment

_COLUMNS = "id, file_path, thumbnail_path, uploader_id, listing_id, uploaded_at"

_INSERT_ATTACHMENT_SQL = text(f"""
    INSERT INTO attachments (file_path, thumbnail_path, uploader_id, uploaded_at)
    VALUES (:file_path, :thumbnail_path, :uploader_id, :uploaded_at)
    RETURNING {_COLUMNS}
""")

_PURGE_DANGLING_SQL = text(f"""
    DELETE FROM attachments
    WHERE listing_id IS NULL AND uploaded_at < :cutoff
    RETURNING {_COLUMNS}
""")


class AttachmentRepository:
    async def insert(
        self,
        db: AsyncSession,
        file_path: str,
        thumbnail_path: str,
        uploader_id: int,
        uploaded_at: datetime,
    ) -> Attachment:
        result = await db.execute(
            _INSERT_ATTACHMENT_SQL,
            {
                "file_path": file_path,
                "thumbnail_path": thumbnail_path,
                "uploader_id": uploader_id,
                "uploaded_at": uploaded_at,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Attachment insert returned no rows")
        return row_to_attachment(row)

    async def purge_dangling(
        self, db: AsyncSession, cutoff: datetime
    ) -> list[Attachment]:
        """Delete unbound attachments uploaded before `cutoff`, returning them."""
        result = await db.execute(_PURGE_DANGLING_SQL, {"cutoff": cutoff})
        return [row_to_attachment(row) for row in result.fetchall()]
