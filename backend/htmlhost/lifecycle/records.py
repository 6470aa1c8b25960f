"""
Record lifecycle operations: lookup, servability, archive flags and deletion.

Deletion removes the record first and the directory second. A crash in
between leaves an orphaned directory for the reconcile pass, never a record
pointing at content that is half gone.
"""
import logging
from datetime import datetime
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from htmlhost import crud, storage
from htmlhost.core.errors import ContentExpired, Forbidden, NotFound
from htmlhost.ingestion.slugs import SlugAllocator, normalize_slug
from htmlhost.models import ContentRecord, ContentRecordPublic, SlugAvailability

logger = logging.getLogger(__name__)


def get_record(*, session: Session, slug: str) -> ContentRecord:
    record = crud.get_record_by_slug(session=session, slug=normalize_slug(slug))
    if record is None:
        raise NotFound("File not found")
    return record


def is_servable(record: ContentRecord | None, now: datetime) -> bool:
    if record is None or record.archived or record.is_expired(now):
        return False
    return Path(record.storage_path).is_file()


def resolve_servable(*, session: Session, slug: str, now: datetime) -> ContentRecord:
    """Record for a slug that may be served right now."""
    record = crud.get_record_by_slug(session=session, slug=normalize_slug(slug))
    if record is not None and not record.archived and record.is_expired(now):
        raise ContentExpired("This content has expired and is no longer available.")
    if not is_servable(record, now):
        if record is not None and not record.archived:
            logger.error(f"Entry point missing on disk for {record.slug}: {record.storage_path}")
        raise NotFound("The requested file was not found.")
    return record  # type: ignore[return-value]


def resolve_asset(record: ContentRecord, relative_path: str) -> Path:
    """A file inside the record's directory; never anything outside it."""
    root = record.storage_dir.resolve()
    target = (root / (relative_path or storage.ENTRY_POINT)).resolve()
    if target.is_dir():
        target = target / storage.ENTRY_POINT
    if not target.is_relative_to(root) or not target.is_file():
        raise NotFound("The requested file was not found.")
    return target


def record_access(*, session: Session, slug: str) -> None:
    # Best effort: a failed counter update never blocks serving
    try:
        crud.increment_access_count(session=session, slug=slug)
    except SQLAlchemyError:
        session.rollback()
        logger.warning(f"Error incrementing access count for {slug}", exc_info=True)


def set_archived(*, session: Session, slug: str, archived: bool) -> None:
    if crud.set_archived(session=session, slug=normalize_slug(slug), archived=archived) == 0:
        raise NotFound("File not found")
    logger.info(f"{'Archived' if archived else 'Unarchived'}: {slug}")


def delete_record(
    *,
    session: Session,
    slug: str,
    uploads_dir: Path,
    owner_key_hash: str | None = None,
    check_owner: bool = True,
) -> None:
    slug = normalize_slug(slug)
    record = get_record(session=session, slug=slug)
    if check_owner and record.owner_key_hash and record.owner_key_hash != owner_key_hash:
        raise Forbidden("Not authorized to modify this file")

    count, storage_path = crud.delete_record_by_slug(session=session, slug=slug)
    if count == 0 or storage_path is None:
        raise NotFound("File not found")
    try:
        storage.remove_upload_dir(storage.owned_dir(storage_path, uploads_dir))
    except (OSError, ValueError):
        logger.exception(f"Record {slug} deleted but its directory could not be removed")
    logger.info(f"Deleted: {slug}")


def check_slug(*, session: Session, slug: str) -> SlugAvailability:
    candidate = normalize_slug(slug)
    if not SlugAllocator.validate(candidate):
        return SlugAvailability(available=False, reason="invalid_format")
    if SlugAllocator.is_reserved(candidate):
        return SlugAvailability(available=False, reason="reserved")
    if crud.slug_exists(session=session, slug=candidate):
        return SlugAvailability(available=False, reason="taken")
    return SlugAvailability(available=True)


def to_public(
    record: ContentRecord,
    now: datetime,
    base_url: str = "",
    owner_key_hash: str | None = None,
) -> ContentRecordPublic:
    return ContentRecordPublic(
        id=record.id,
        slug=record.slug,
        url=f"{base_url.rstrip('/')}/{record.slug}/",
        description=record.description,
        kind=record.kind,
        file_count=record.file_count,
        size_bytes=record.size_bytes,
        original_name=record.original_name,
        created_at=record.created_at,
        expires_at=record.expires_at,
        archived=record.archived,
        access_count=record.access_count,
        permanent=record.permanent,
        expired=record.is_expired(now),
        password_protected=record.password_hash is not None,
        is_owner=owner_key_hash is not None and record.owner_key_hash == owner_key_hash,
    )
