from pydantic import BaseModel, Field


class BundleEntry(BaseModel):
    index: int  # position in ZipFile.infolist()
    name: str  # raw entry name as stored in the archive
    path: str  # normalized relative path, forward slashes
    size: int  # declared uncompressed size
    is_entry_point: bool = False


class ValidationIssue(BaseModel):
    code: str
    message: str
    entry: str | None = None


class ValidationReport(BaseModel):
    valid: bool = True
    has_entry_point: bool = False
    file_count: int = 0
    total_size: int = 0
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)
    entries: list[BundleEntry] = Field(default_factory=list)
    common_folder: str | None = None

    def add_error(self, code: str, message: str, entry: str | None = None) -> None:
        self.errors.append(ValidationIssue(code=code, message=message, entry=entry))
        self.valid = False

    def add_warning(self, code: str, message: str, entry: str | None = None) -> None:
        self.warnings.append(ValidationIssue(code=code, message=message, entry=entry))

    def error_codes(self) -> set[str]:
        return {issue.code for issue in self.errors}

    def error_messages(self) -> list[str]:
        return [issue.message for issue in self.errors]


class ExtractionResult(BaseModel):
    files_written: int = 0
    bytes_written: int = 0
