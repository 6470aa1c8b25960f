import logging
import re
from collections.abc import Callable
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from htmlhost import crud, storage
from htmlhost.archive import ArchiveExtractor, ArchiveValidator, ValidationReport
from htmlhost.archive.schemas import ExtractionResult
from htmlhost.core.clock import Clock, utcnow
from htmlhost.core.config import settings
from htmlhost.core.errors import (
    AllocationExhausted,
    BundleRejected,
    ExtractionFailed,
    Forbidden,
    Internal,
    InvalidDocument,
    MissingEntryPoint,
    NotFound,
    SizeLimitExceeded,
    SlugConflict,
)
from htmlhost.core.security import get_password_hash
from htmlhost.ingestion.expiry import compute_expiry
from htmlhost.ingestion.schemas import UpdateOptions, UploadOptions
from htmlhost.ingestion.slugs import SlugAllocator, normalize_slug
from htmlhost.models import ContentKind, ContentRecord

logger = logging.getLogger(__name__)

HTML_MARKER = re.compile(r"<html|<!doctype", re.IGNORECASE)

Writer = Callable[[Path], ExtractionResult]


def looks_like_html(content: str) -> bool:
    return bool(HTML_MARKER.search(content))


def raise_for_report(report: ValidationReport) -> None:
    """Turn a failed validation report into the matching typed error."""
    if report.valid:
        return
    codes = report.error_codes()
    messages = report.error_messages()
    message = "; ".join(messages)
    if codes - {"missing_entry_point", "size_limit_exceeded"}:
        raise BundleRejected(message, errors=messages)
    if "size_limit_exceeded" in codes:
        raise SizeLimitExceeded(message, errors=messages)
    raise MissingEntryPoint(message, errors=messages)


class IngestionPipeline:
    """
    Validation -> extraction -> record creation, all or nothing.

    Each attempt writes into its own freshly created directory. Whatever
    goes wrong after that directory exists (extraction, slug allocation,
    the metadata store, an interrupt), the directory is removed before the
    error leaves this class.
    """

    def __init__(
        self,
        session: Session,
        *,
        uploads_dir: Path | None = None,
        clock: Clock = utcnow,
        allocator: SlugAllocator | None = None,
        validator: ArchiveValidator | None = None,
        extractor: ArchiveExtractor | None = None,
        max_document_size: int | None = None,
        max_bundle_size: int | None = None,
    ):
        self.session = session
        self.uploads_dir = uploads_dir or settings.UPLOADS_DIR
        self.clock = clock
        self.max_document_size = max_document_size or settings.MAX_HTML_SIZE
        self.max_bundle_size = max_bundle_size or settings.MAX_ZIP_SIZE
        self.allocator = allocator or SlugAllocator(session)
        self.validator = validator or ArchiveValidator(self.max_bundle_size)
        self.extractor = extractor or ArchiveExtractor(self.max_bundle_size)

    # ── New uploads ─────────────────────────────────────────────

    def ingest_document(
        self, html: str, options: UploadOptions, owner_key_hash: str | None = None
    ) -> ContentRecord:
        self._check_document(html)
        return self._ingest(
            ContentKind.DOCUMENT, options, owner_key_hash, lambda d: self._write_document(html, d)
        )

    def ingest_bundle(
        self, data: bytes, options: UploadOptions, owner_key_hash: str | None = None
    ) -> ContentRecord:
        report = self._check_bundle(data)
        return self._ingest(
            ContentKind.BUNDLE, options, owner_key_hash,
            lambda d: self.extractor.extract(data, report, d),
        )

    def _ingest(
        self,
        kind: ContentKind,
        options: UploadOptions,
        owner_key_hash: str | None,
        write: Writer,
    ) -> ContentRecord:
        custom_slug = options.slug if options.slug and options.slug.strip() else None
        if custom_slug:
            # Cheap rejection before any bytes touch disk
            self.allocator.allocate(custom_slug)

        upload_id, upload_dir = storage.create_upload_dir(self.uploads_dir)
        committed = False
        try:
            written = write(upload_dir)
            now = self.clock()
            password = options.password.strip() if options.password else ""
            record = ContentRecord(
                id=upload_id,
                slug="",
                description=options.description or "",
                kind=kind,
                file_count=written.files_written,
                size_bytes=written.bytes_written,
                storage_path=str(upload_dir / storage.ENTRY_POINT),
                original_name=options.original_name,
                created_at=now,
                expires_at=compute_expiry(options.duration, now),
                owner_key_hash=owner_key_hash,
                password_hash=get_password_hash(password) if password else None,
            )
            record = self._insert(record, custom_slug)
            committed = True
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception(f"Metadata store failure while ingesting {upload_id}")
            raise Internal("Upload failed") from e
        finally:
            if not committed:
                storage.discard_upload_dir(upload_dir)

        logger.info(
            f"{kind.value} uploaded: {record.slug} "
            f"({record.file_count} files, {record.size_bytes} bytes)"
        )
        return record

    def _insert(self, record: ContentRecord, custom_slug: str | None) -> ContentRecord:
        for _ in range(self.allocator.max_attempts):
            record.slug = self.allocator.allocate(custom_slug)
            try:
                return crud.create_record(session=self.session, record=record)
            except SlugConflict:
                if custom_slug:
                    raise
                logger.warning(f"Lost insert race for random slug {record.slug}, retrying")
        raise AllocationExhausted("Failed to generate a unique slug. Please try again.")

    # ── Replacing content ───────────────────────────────────────

    def replace_document(
        self, slug: str, html: str, options: UpdateOptions, owner_key_hash: str | None = None
    ) -> ContentRecord:
        self._check_document(html)
        return self._replace(
            slug, ContentKind.DOCUMENT, options, owner_key_hash,
            lambda d: self._write_document(html, d),
        )

    def replace_bundle(
        self, slug: str, data: bytes, options: UpdateOptions, owner_key_hash: str | None = None
    ) -> ContentRecord:
        report = self._check_bundle(data)
        return self._replace(
            slug, ContentKind.BUNDLE, options, owner_key_hash,
            lambda d: self.extractor.extract(data, report, d),
        )

    def _replace(
        self,
        slug: str,
        kind: ContentKind,
        options: UpdateOptions,
        owner_key_hash: str | None,
        write: Writer,
    ) -> ContentRecord:
        slug = normalize_slug(slug)
        existing = crud.get_record_by_slug(session=self.session, slug=slug)
        if existing is None:
            raise NotFound("File not found")
        if existing.owner_key_hash and existing.owner_key_hash != owner_key_hash:
            raise Forbidden("Not authorized to modify this file")
        old_storage_path = existing.storage_path

        _, new_dir = storage.create_upload_dir(self.uploads_dir)
        committed = False
        try:
            written = write(new_dir)
            fields = {
                "kind": kind,
                "storage_path": str(new_dir / storage.ENTRY_POINT),
                "file_count": written.files_written,
                "size_bytes": written.bytes_written,
            }
            if options.duration:
                fields["expires_at"] = compute_expiry(options.duration, self.clock())
            if options.description is not None:
                fields["description"] = options.description
            if "password" in options.model_fields_set:
                password = options.password.strip() if options.password else ""
                fields["password_hash"] = get_password_hash(password) if password else None
            if crud.update_record(session=self.session, slug=slug, fields=fields) == 0:
                raise NotFound("File not found")
            committed = True
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception(f"Metadata store failure while replacing {slug}")
            raise Internal("Update failed") from e
        finally:
            if not committed:
                storage.discard_upload_dir(new_dir)

        # The record now points at the new directory; the old one is unreferenced
        try:
            storage.remove_upload_dir(storage.owned_dir(old_storage_path, self.uploads_dir))
        except (OSError, ValueError):
            logger.exception(f"Could not remove previous content of {slug}")

        record = crud.get_record_by_slug(session=self.session, slug=slug)
        if record is None:
            raise NotFound("File not found")
        logger.info(f"{kind.value} replaced: {slug} ({record.file_count} files)")
        return record

    # ── Content checks and writers ──────────────────────────────

    def _check_document(self, html: str) -> None:
        if len(html.encode("utf-8")) > self.max_document_size:
            raise SizeLimitExceeded(
                f"HTML content exceeds {self.max_document_size // (1024 * 1024)}MB limit"
            )
        if not looks_like_html(html):
            raise InvalidDocument("Invalid HTML content. Must contain valid HTML structure.")

    def _check_bundle(self, data: bytes) -> ValidationReport:
        if len(data) > self.max_bundle_size:
            raise SizeLimitExceeded(
                f"ZIP file exceeds {self.max_bundle_size // (1024 * 1024)}MB limit"
            )
        report = self.validator.validate(data)
        raise_for_report(report)
        if report.warnings:
            logger.info(
                "Bundle warnings: " + ", ".join(w.message for w in report.warnings)
            )
        return report

    @staticmethod
    def _write_document(html: str, upload_dir: Path) -> ExtractionResult:
        data = html.encode("utf-8")
        try:
            (upload_dir / storage.ENTRY_POINT).write_bytes(data)
        except OSError as e:
            logger.error(f"Writing document into {upload_dir} failed: {e}")
            raise ExtractionFailed("Failed to store the document") from e
        return ExtractionResult(files_written=1, bytes_written=len(data))
