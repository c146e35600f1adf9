"""Pydantic schemas for attachments.

File paths are stored relative to UPLOAD_DIR; URLs are served from /media.
"""

from pydantic import BaseModel

from src.mp_ledger.domain.models import Attachment

MEDIA_URL_PREFIX = "/media"


def media_url(relative_path: str) -> str:
    return f"{MEDIA_URL_PREFIX}/{relative_path}"


class AttachmentItem(BaseModel):
    id: int
    url: str
    thumbnail_url: str
    listing_id: int | None
    uploaded_at: str

    @classmethod
    def from_domain(cls, attachment: Attachment) -> "AttachmentItem":
        return cls(
            id=attachment.id,
            url=media_url(attachment.file_path),
            thumbnail_url=media_url(attachment.thumbnail_path),
            listing_id=attachment.listing_id,
            uploaded_at=attachment.uploaded_at.isoformat(),
        )
