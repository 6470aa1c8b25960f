import io
import logging
import zipfile
import zlib
from pathlib import Path

from htmlhost.archive.schemas import BundleEntry, ExtractionResult, ValidationReport
from htmlhost.core.config import settings
from htmlhost.core.errors import ExtractionFailed, SizeLimitExceeded
from htmlhost.storage import ENTRY_POINT

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def target_path(entry: BundleEntry, common_folder: str | None) -> str:
    """Relative path an accepted entry is written to inside the destination."""
    parts = entry.path.split("/")
    if common_folder:
        parts = parts[1:]
    if entry.is_entry_point:
        parts[-1] = ENTRY_POINT
    return "/".join(parts)


class ArchiveExtractor:
    """
    Writes the accepted entries of a validated bundle into a fresh directory.

    Bytes are counted while they are written, so an archive that understates
    its sizes cannot write more than it declared or more than the ceiling.
    Partial output is left in place on failure; the caller owns the directory
    and purges it.
    """

    def __init__(self, max_total_size: int | None = None):
        self.max_total_size = max_total_size or settings.MAX_ZIP_SIZE

    def extract(
        self, data: bytes, report: ValidationReport, destination: Path
    ) -> ExtractionResult:
        if not report.valid:
            raise ExtractionFailed("Refusing to extract a bundle that failed validation")

        root = destination.resolve()
        result = ExtractionResult()
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                infos = zf.infolist()
                for entry in report.entries:
                    relative = target_path(entry, report.common_folder)
                    target = (root / relative).resolve()
                    if not target.is_relative_to(root) or target == root:
                        raise ExtractionFailed(
                            f"Entry escapes the upload directory: {entry.name}"
                        )
                    target.parent.mkdir(parents=True, exist_ok=True)
                    written = self._write_entry(zf, infos[entry.index], entry, target, result)
                    result.files_written += 1
                    logger.debug(f"Extracted {entry.name} -> {relative} ({written} bytes)")
        except (ExtractionFailed, SizeLimitExceeded):
            raise
        except (OSError, zipfile.BadZipFile, zlib.error, EOFError, RuntimeError,
                NotImplementedError) as e:
            logger.error(f"Bundle extraction into {destination} failed: {e}")
            raise ExtractionFailed("Extraction failed while writing bundle files") from e

        return result

    def _write_entry(
        self,
        zf: zipfile.ZipFile,
        info: zipfile.ZipInfo,
        entry: BundleEntry,
        target: Path,
        result: ExtractionResult,
    ) -> int:
        written = 0
        # Always a regular file: links in the archive never become links on disk
        with zf.open(info) as source, open(target, "wb") as sink:
            while chunk := source.read(CHUNK_SIZE):
                written += len(chunk)
                result.bytes_written += len(chunk)
                if written > entry.size:
                    raise SizeLimitExceeded(
                        f"Entry {entry.name} is larger than its declared size"
                    )
                if result.bytes_written > self.max_total_size:
                    raise SizeLimitExceeded(
                        f"Total extracted size exceeds {self.max_total_size // (1024 * 1024)}MB limit"
                    )
                sink.write(chunk)
        return written
