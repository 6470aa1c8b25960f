from .extractor import ArchiveExtractor
from .schemas import BundleEntry, ExtractionResult, ValidationIssue, ValidationReport
from .validator import ArchiveValidator

__all__ = [
    "ArchiveExtractor",
    "ArchiveValidator",
    "BundleEntry",
    "ExtractionResult",
    "ValidationIssue",
    "ValidationReport",
]
