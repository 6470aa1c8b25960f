from sqlmodel import SQLModel

from .content_record import (
    ContentKind,
    ContentRecord,
    ContentRecordBase,
    ContentRecordPublic,
    ContentRecordsPublic,
    SlugAvailability,
    StorageStats,
)
