"""AttachmentService: accept an image upload, thumbnail it, index it.

Files land in UPLOAD_DIR under a random 20-character name:
    <name>.<ext>          the original bytes
    <name>.thumb.webp     a 320x320 (max) WebP thumbnail, quality 50
Paths stored in the database are relative to UPLOAD_DIR.

The new row is unbound (listing_id NULL). It becomes part of a listing only
through TransactionEngine.create_listing; otherwise AttachmentCleaner removes
it after DANGLING_ATTACHMENT_TIMEOUT_SECONDS.
"""

import asyncio
import io
import logging
import secrets
import string
from pathlib import Path

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.mp_attachment.infrastructure.persistence import AttachmentRepository
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_common.errors import UnsupportedAttachmentError
from src.mp_ledger.domain.models import Attachment

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ("jpg", "jpeg", "png", "webp")
RANDOM_NAME_LENGTH = 20
MAX_IMAGE_RESOLUTION = 10_000
THUMBNAIL_SIZE = (320, 320)
THUMBNAIL_QUALITY = 50

_CHUNK_SIZE = 1024 * 1024
_NAME_ALPHABET = string.ascii_letters + string.digits


def file_extension(filename: str | None) -> str:
    """Validated lower-case extension of an uploaded file name."""
    if not filename:
        raise UnsupportedAttachmentError("No file name provided with file")
    suffix = Path(filename).suffix
    if not suffix:
        raise UnsupportedAttachmentError("File name does not contain extension")
    extension = suffix[1:].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedAttachmentError(
            f"Bad file extension. Accepted extensions are: {', '.join(ALLOWED_EXTENSIONS)}"
        )
    return extension


def random_name() -> str:
    return "".join(secrets.choice(_NAME_ALPHABET) for _ in range(RANDOM_NAME_LENGTH))


def make_thumbnail(data: bytes, filename: str) -> bytes:
    """Decode the image and render its WebP thumbnail. Blocking; run in a thread."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            # Header is parsed lazily; check dimensions before decoding pixels
            width, height = img.size
            if width > MAX_IMAGE_RESOLUTION or height > MAX_IMAGE_RESOLUTION:
                raise UnsupportedAttachmentError(
                    f"Image resolution may be at most {MAX_IMAGE_RESOLUTION}x{MAX_IMAGE_RESOLUTION}"
                )
            img.load()
            thumb = img.convert("RGBA") if img.mode not in ("RGB", "RGBA") else img.copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError):
        raise UnsupportedAttachmentError(
            f"Could not decode {filename}. Uploaded image might be too large or corrupted."
        ) from None

    thumb.thumbnail(THUMBNAIL_SIZE)
    out = io.BytesIO()
    thumb.save(out, format="WEBP", quality=THUMBNAIL_QUALITY)
    return out.getvalue()


class AttachmentService:
    def __init__(
        self,
        repo: AttachmentRepository | None = None,
        upload_dir: Path | None = None,
        max_bytes: int | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo or AttachmentRepository()
        self._upload_dir = upload_dir or Path(settings.UPLOAD_DIR)
        self._max_bytes = max_bytes or settings.MAX_UPLOAD_BYTES
        self._clock = clock

    async def _read_limited(self, upload: UploadFile) -> bytes:
        buffer = bytearray()
        try:
            while True:
                chunk = await upload.read(_CHUNK_SIZE)
                if not chunk:
                    break
                buffer.extend(chunk)
                if len(buffer) > self._max_bytes:
                    raise UnsupportedAttachmentError(
                        f"File may be at most {self._max_bytes // (1024 * 1024)} MiB"
                    )
        finally:
            await upload.close()
        if not buffer:
            raise UnsupportedAttachmentError("Uploaded file is empty")
        return bytes(buffer)

    def _allocate_paths(self, extension: str) -> tuple[str, str]:
        while True:
            name = random_name()
            file_path = f"{name}.{extension}"
            if not (self._upload_dir / file_path).exists():
                return file_path, f"{name}.thumb.webp"

    async def upload(
        self, db: AsyncSession, uploader_id: int, upload: UploadFile
    ) -> Attachment:
        extension = file_extension(upload.filename)
        data = await self._read_limited(upload)
        thumbnail = await asyncio.to_thread(make_thumbnail, data, upload.filename or "")

        self._upload_dir.mkdir(parents=True, exist_ok=True)
        file_path, thumbnail_path = self._allocate_paths(extension)
        written = [self._upload_dir / thumbnail_path, self._upload_dir / file_path]
        try:
            await asyncio.to_thread(written[0].write_bytes, thumbnail)
            await asyncio.to_thread(written[1].write_bytes, data)
            async with db.begin():
                attachment = await self._repo.insert(
                    db, file_path, thumbnail_path, uploader_id, self._clock()
                )
        except BaseException:
            for path in written:
                path.unlink(missing_ok=True)
            raise

        logger.info(
            "Attachment uploaded: id=%s uploader=%s size=%d",
            attachment.id,
            uploader_id,
            len(data),
        )
        return attachment
