import uuid
from datetime import datetime
from enum import Enum
from pathlib import Path

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from htmlhost.core.clock import utcnow


class ContentKind(str, Enum):
    DOCUMENT = "single-document"
    BUNDLE = "bundle"


# 共享属性
class ContentRecordBase(SQLModel):
    slug: str = Field(unique=True, index=True, min_length=1, max_length=100)
    description: str = Field(default="", max_length=1000)
    kind: ContentKind = Field(default=ContentKind.DOCUMENT)
    file_count: int = Field(default=1)
    size_bytes: int = Field(default=0)
    # 时间统一按 naive UTC 存储
    expires_at: datetime | None = Field(default=None, index=True, sa_type=DateTime)  # None 表示永久
    archived: bool = Field(default=False)


# 数据库模型，每个托管内容一条记录
class ContentRecord(ContentRecordBase, table=True):
    __tablename__ = "content_record"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    storage_path: str = Field(max_length=1024)  # 入口 index.html 的路径
    original_name: str = Field(default="", max_length=255)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    access_count: int = Field(default=0)
    owner_key_hash: str | None = Field(default=None, max_length=64, index=True)
    password_hash: str | None = Field(default=None, max_length=255)

    @property
    def storage_dir(self) -> Path:
        """The per-upload directory owning every file of this record."""
        return Path(self.storage_path).parent

    @property
    def permanent(self) -> bool:
        return self.expires_at is None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


# 通过 API 返回的属性
class ContentRecordPublic(ContentRecordBase):
    id: uuid.UUID
    url: str = ""
    original_name: str = ""
    created_at: datetime
    access_count: int = 0
    permanent: bool = False
    expired: bool = False
    password_protected: bool = False
    is_owner: bool = False


class ContentRecordsPublic(SQLModel):
    data: list[ContentRecordPublic]
    count: int


class SlugAvailability(SQLModel):
    available: bool
    reason: str | None = None


class StorageStats(SQLModel):
    total_files: int = 0
    total_size: int = 0
    active_files: int = 0
    active_size: int = 0
    expired_files: int = 0
    expired_size: int = 0
