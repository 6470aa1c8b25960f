"""
ZIP bundle inspection.

Works purely on the archive's central directory: nothing is decompressed and
nothing is written to disk. Every offending entry is reported, so a client
can fix a bundle in one round-trip.
"""
import io
import logging
import re
import stat
import zipfile
from pathlib import PurePosixPath

from htmlhost.archive.schemas import BundleEntry, ValidationReport
from htmlhost.core.config import settings
from htmlhost.storage import ENTRY_POINT

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = frozenset(
    {
        # Web essentials
        ".html", ".htm", ".css", ".js", ".mjs",
        # Images
        ".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".ico", ".bmp",
        # Fonts
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        # Data files
        ".json", ".xml", ".txt", ".md", ".csv",
        # Media
        ".mp3", ".mp4", ".webm", ".ogg", ".wav",
        # Other web assets
        ".map", ".webmanifest", ".manifest",
    }
)

BLOCKED_EXTENSIONS = frozenset(
    {
        # Executables
        ".exe", ".dll", ".bat", ".cmd", ".sh", ".ps1", ".msi",
        # Server-side scripts
        ".php", ".py", ".rb", ".pl", ".cgi", ".asp", ".aspx", ".jsp",
        # Java
        ".jar", ".class", ".war",
        # Config files that could leak secrets
        ".htaccess", ".htpasswd", ".env", ".config", ".ini",
        # Database files
        ".sql", ".db", ".sqlite", ".mdb",
        # Keys and certificates
        ".pem", ".key", ".crt", ".pfx",
    }
)

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def normalize_entry_name(name: str) -> str:
    return name.replace("\\", "/")


def is_platform_metadata(name: str) -> bool:
    """__MACOSX folders, AppleDouble ``._`` files and .DS_Store."""
    parts = normalize_entry_name(name).split("/")
    if "__MACOSX" in parts:
        return True
    filename = parts[-1]
    return filename.startswith("._") or filename == ".DS_Store"


def is_absolute(name: str) -> bool:
    normalized = normalize_entry_name(name)
    return normalized.startswith("/") or bool(_DRIVE_PREFIX.match(normalized))


def path_segments(name: str) -> list[str]:
    return [p for p in normalize_entry_name(name).split("/") if p not in ("", ".")]


def file_extension(name: str) -> str:
    filename = PurePosixPath(normalize_entry_name(name)).name.lower()
    suffix = PurePosixPath(filename).suffix
    if not suffix and filename.startswith("."):
        # Dotfiles such as .env or .htaccess are classified by their whole name
        return filename
    return suffix


def is_symlink(info: zipfile.ZipInfo) -> bool:
    return stat.S_ISLNK(info.external_attr >> 16)


def detect_common_folder(paths: list[str]) -> str | None:
    common = None
    for path in paths:
        parts = path.split("/")
        if len(parts) < 2:
            return None
        if common is None:
            common = parts[0]
        elif parts[0] != common:
            return None
    return common


class ArchiveValidator:
    def __init__(self, max_total_size: int | None = None):
        self.max_total_size = max_total_size or settings.MAX_ZIP_SIZE

    def validate(self, data: bytes) -> ValidationReport:
        report = ValidationReport()
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                infos = zf.infolist()
        except (zipfile.BadZipFile, zipfile.LargeZipFile, ValueError, EOFError) as e:
            logger.info(f"Unreadable bundle: {e}")
            report.add_error("bad_archive", "File is not a valid ZIP archive")
            return report

        for index, info in enumerate(infos):
            self._inspect(report, index, info)

        report.common_folder = detect_common_folder([e.path for e in report.entries])
        self._mark_entry_point(report)

        if not report.has_entry_point:
            report.add_error(
                "missing_entry_point",
                "ZIP must contain index.html at the root level or inside a single top-level folder",
            )

        if report.total_size > self.max_total_size:
            report.add_error(
                "size_limit_exceeded",
                f"Total extracted size exceeds {self.max_total_size // (1024 * 1024)}MB limit",
            )

        return report

    def _inspect(self, report: ValidationReport, index: int, info: zipfile.ZipInfo) -> None:
        name = info.filename
        normalized = normalize_entry_name(name)
        if info.is_dir() or normalized.endswith("/"):
            return
        if is_platform_metadata(name):
            logger.debug(f"Skipping platform metadata: {name}")
            return

        report.file_count += 1
        report.total_size += info.file_size

        segments = path_segments(name)
        if is_absolute(name) or ".." in segments or not segments:
            report.add_error("unsafe_path", f"Invalid path: {name}", entry=name)
            return

        if is_symlink(info):
            report.add_error("symlink", f"Symbolic links are not allowed: {name}", entry=name)
            return

        if info.flag_bits & 0x1:
            report.add_error("encrypted", f"Encrypted entries are not supported: {name}", entry=name)
            return

        extension = file_extension(name)
        if extension in BLOCKED_EXTENSIONS:
            report.add_error("blocked_type", f"Blocked file type: {name}", entry=name)
            return

        if extension not in ALLOWED_EXTENSIONS:
            report.add_warning("nonstandard_type", f"Non-standard file type: {name}", entry=name)

        report.entries.append(
            BundleEntry(index=index, name=name, path="/".join(segments), size=info.file_size)
        )

    @staticmethod
    def _mark_entry_point(report: ValidationReport) -> None:
        depth = 2 if report.common_folder else 1
        candidates = []
        for entry in report.entries:
            parts = entry.path.split("/")
            if len(parts) == depth and parts[-1].lower() == ENTRY_POINT:
                candidates.append(entry)
        if not candidates:
            return
        # An exact-case index.html wins over INDEX.HTML and friends
        chosen = next((e for e in candidates if e.path.endswith(ENTRY_POINT)), candidates[0])
        chosen.is_entry_point = True
        report.has_entry_point = True
