import logging
import uuid
from pathlib import Path

from pydantic import BaseModel
from sqlmodel import Session

from htmlhost import crud, storage
from htmlhost.core.clock import Clock, utcnow
from htmlhost.core.config import settings

logger = logging.getLogger(__name__)


class SweepReport(BaseModel):
    found: int = 0
    deleted: int = 0
    directories_removed: int = 0
    errors: int = 0


class ReconcileReport(BaseModel):
    orphans: int = 0
    removed: int = 0
    errors: int = 0


class LifecycleReaper:
    """
    Purges expired records together with their upload directories.

    A record is only deleted once its directory is confirmed gone. Items
    whose directory cannot be removed stay in the store and are retried on
    the next sweep, so nothing that still occupies disk loses its metadata.
    """

    def __init__(
        self,
        session: Session,
        *,
        uploads_dir: Path | None = None,
        clock: Clock = utcnow,
    ):
        self.session = session
        self.uploads_dir = uploads_dir or settings.UPLOADS_DIR
        self.clock = clock

    def sweep(self) -> SweepReport:
        report = SweepReport()
        now = self.clock()
        expired = crud.get_expired_records(session=self.session, now=now)
        report.found = len(expired)
        if not expired:
            logger.info("No expired files found.")
            return report

        logger.info(f"Found {len(expired)} expired files to clean up.")
        handled: list[uuid.UUID] = []
        for record in expired:
            try:
                upload_dir = storage.owned_dir(record.storage_path, self.uploads_dir)
                if storage.remove_upload_dir(upload_dir):
                    report.directories_removed += 1
                    logger.info(f"Deleted: {record.id}")
                else:
                    logger.info(f"File already removed from filesystem: {record.id}")
                handled.append(record.id)
            except (OSError, ValueError) as e:
                report.errors += 1
                logger.error(f"Error deleting file {record.id}: {e}")

        report.deleted = crud.delete_records(
            session=self.session, ids=handled, expired_at=now
        )
        logger.info(
            f"Cleanup completed: {report.directories_removed} directories deleted, "
            f"{report.deleted} records removed, {report.errors} errors."
        )
        return report

    def reconcile(self, min_age_seconds: float | None = None) -> ReconcileReport:
        """Remove upload directories that no record references."""
        grace = settings.ORPHAN_GRACE_SECONDS if min_age_seconds is None else min_age_seconds
        live = {Path(p).parent for p in crud.get_storage_paths(session=self.session)}
        orphans = storage.find_orphan_dirs(self.uploads_dir, live, grace)
        report = ReconcileReport(orphans=len(orphans))
        for orphan in orphans:
            try:
                storage.remove_upload_dir(orphan)
                report.removed += 1
                logger.info(f"Removed orphaned directory {orphan.name}")
            except OSError as e:
                report.errors += 1
                logger.error(f"Error removing orphaned directory {orphan.name}: {e}")
        return report
