"""
Metadata store operations.

Every function takes the session it runs in; none of them touch the
filesystem. Each write commits on its own so each operation is atomic.
"""
import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from htmlhost.core.errors import SlugConflict
from htmlhost.models import ContentRecord, StorageStats

logger = logging.getLogger(__name__)


def create_record(*, session: Session, record: ContentRecord) -> ContentRecord:
    """Insert a record; the unique index on ``slug`` is the atomic guard."""
    session.add(record)
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise SlugConflict(
            f"Slug '{record.slug}' is already taken", slug=record.slug
        ) from e
    session.refresh(record)
    return record


def get_record_by_slug(*, session: Session, slug: str) -> ContentRecord | None:
    statement = select(ContentRecord).where(ContentRecord.slug == slug)
    return session.exec(statement).first()


def slug_exists(*, session: Session, slug: str) -> bool:
    statement = select(ContentRecord.id).where(ContentRecord.slug == slug)
    return session.exec(statement).first() is not None


def update_record(*, session: Session, slug: str, fields: dict[str, Any]) -> int:
    statement = (
        update(ContentRecord).where(col(ContentRecord.slug) == slug).values(**fields)
    )
    result = session.exec(statement)  # type: ignore[call-overload]
    session.commit()
    session.expire_all()
    return result.rowcount


def set_archived(*, session: Session, slug: str, archived: bool) -> int:
    return update_record(session=session, slug=slug, fields={"archived": archived})


def increment_access_count(*, session: Session, slug: str) -> int:
    statement = (
        update(ContentRecord)
        .where(col(ContentRecord.slug) == slug)
        .values(access_count=ContentRecord.access_count + 1)
    )
    result = session.exec(statement)  # type: ignore[call-overload]
    session.commit()
    return result.rowcount


def delete_record_by_slug(*, session: Session, slug: str) -> tuple[int, str | None]:
    """Delete by slug, returning the row count and the previous storage path."""
    record = get_record_by_slug(session=session, slug=slug)
    if record is None:
        return 0, None
    storage_path = record.storage_path
    result = session.exec(  # type: ignore[call-overload]
        delete(ContentRecord).where(col(ContentRecord.id) == record.id)
    )
    session.commit()
    return result.rowcount, storage_path


def get_expired_records(*, session: Session, now: datetime) -> list[ContentRecord]:
    statement = (
        select(ContentRecord)
        .where(col(ContentRecord.expires_at).is_not(None))
        .where(col(ContentRecord.expires_at) <= now)
    )
    return list(session.exec(statement).all())


def delete_records(
    *, session: Session, ids: list[uuid.UUID], expired_at: datetime | None = None
) -> int:
    """Batch delete by id; with ``expired_at``, only rows still expired at that moment."""
    if not ids:
        return 0
    statement = delete(ContentRecord).where(col(ContentRecord.id).in_(ids))
    if expired_at is not None:
        # 期间被替换并延长有效期的记录不删除
        statement = statement.where(col(ContentRecord.expires_at).is_not(None)).where(
            col(ContentRecord.expires_at) <= expired_at
        )
    result = session.exec(statement)  # type: ignore[call-overload]
    session.commit()
    return result.rowcount


def list_records(
    *, session: Session, search: str = "", skip: int = 0, limit: int | None = 100
) -> tuple[list[ContentRecord], int]:
    statement = select(ContentRecord)
    count_statement = select(func.count()).select_from(ContentRecord)
    if search:
        pattern = f"%{search.lower()}%"
        condition = or_(
            col(ContentRecord.slug).like(pattern),
            func.lower(ContentRecord.description).like(pattern),
        )
        statement = statement.where(condition)
        count_statement = count_statement.where(condition)
    count = session.exec(count_statement).one()
    statement = statement.order_by(col(ContentRecord.created_at).desc()).offset(skip)
    if limit is not None:
        statement = statement.limit(limit)
    return list(session.exec(statement).all()), count


def get_storage_paths(*, session: Session) -> list[str]:
    return list(session.exec(select(ContentRecord.storage_path)).all())


def get_storage_stats(*, session: Session, now: datetime) -> StorageStats:
    stats = StorageStats()
    rows = session.exec(select(ContentRecord.expires_at, ContentRecord.size_bytes))
    for expires_at, size_bytes in rows:
        stats.total_files += 1
        stats.total_size += size_bytes
        if expires_at is not None and expires_at <= now:
            stats.expired_files += 1
            stats.expired_size += size_bytes
        else:
            stats.active_files += 1
            stats.active_size += size_bytes
    return stats
