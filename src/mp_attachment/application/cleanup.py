"""Background removal of attachments never bound to a listing.

Started from the FastAPI lifespan:

    cleaner = AttachmentCleaner()
    task = asyncio.create_task(cleaner.run_forever())
    ...
    task.cancel()

Each pass deletes rows still unbound DANGLING_ATTACHMENT_TIMEOUT_SECONDS after
upload (DELETE ... RETURNING, one transaction), then removes their files. A
failing pass is logged and the loop carries on.
"""

import asyncio
import logging
from datetime import timedelta
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import settings
from src.mp_attachment.infrastructure.persistence import AttachmentRepository
from src.mp_common.database import async_session_factory
from src.mp_common.datetime_utils import Clock, utc_now
from src.mp_ledger.domain.models import Attachment

logger = logging.getLogger(__name__)


class AttachmentCleaner:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        repo: AttachmentRepository | None = None,
        upload_dir: Path | None = None,
        timeout: timedelta | None = None,
        interval: float | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._repo = repo or AttachmentRepository()
        self._upload_dir = upload_dir or Path(settings.UPLOAD_DIR)
        self._timeout = timeout or timedelta(
            seconds=settings.DANGLING_ATTACHMENT_TIMEOUT_SECONDS
        )
        self._interval = interval if interval is not None else settings.CLEANUP_INTERVAL_SECONDS
        self._clock = clock

    async def run_once(self) -> list[Attachment]:
        cutoff = self._clock() - self._timeout
        async with self._session_factory() as db:
            async with db.begin():
                removed = await self._repo.purge_dangling(db, cutoff)

        for attachment in removed:
            for relative in (attachment.file_path, attachment.thumbnail_path):
                path = self._upload_dir / relative
                try:
                    await asyncio.to_thread(path.unlink, missing_ok=True)
                except OSError as exc:
                    logger.error("Could not remove attachment file %s: %s", path, exc)

        if removed:
            logger.info("Cleaned %d attachments without associated items", len(removed))
        return removed

    async def run_forever(self) -> None:
        logger.info(
            "Attachment cleanup started: every %.0fs, timeout %ds",
            self._interval,
            int(self._timeout.total_seconds()),
        )
        while True:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Attachment cleanup pass failed")
            await asyncio.sleep(self._interval)
