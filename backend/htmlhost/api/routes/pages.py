import base64
import binascii
import logging
from typing import Any

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field, model_validator

from htmlhost import crud
from htmlhost.api.deps import ApiKeyDep, ClockDep, SessionDep, UploadsDirDep
from htmlhost.core.errors import InvalidInput
from htmlhost.ingestion import IngestionPipeline, UpdateOptions, UploadOptions
from htmlhost.lifecycle import records
from htmlhost.models import (
    ContentRecordPublic,
    ContentRecordsPublic,
    SlugAvailability,
    StorageStats,
)

router = APIRouter()
logger = logging.getLogger(__name__)


class UploadContent(BaseModel):
    # html 与 zip（base64）二选一
    html: str | None = None
    zip: str | None = None
    filename: str = ""

    @model_validator(mode="after")
    def one_payload(self) -> "UploadContent":
        if (self.html is None) == (self.zip is None):
            raise ValueError("Provide exactly one of 'html' or 'zip'")
        return self

    def zip_bytes(self) -> bytes:
        try:
            # 允许按行折叠的 base64（如 `base64` 命令默认 76 列输出）
            return base64.b64decode("".join((self.zip or "").split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInput("ZIP content must be base64 encoded") from e


class UploadCreate(UploadContent):
    slug: str | None = None
    description: str = Field(default="", max_length=1000)
    duration: str | None = None
    password: str | None = None


class UploadUpdate(UploadContent):
    description: str | None = Field(default=None, max_length=1000)
    duration: str | None = None
    password: str | None = None


def _base_url(request: Request) -> str:
    return str(request.base_url)


@router.post("/upload", response_model=ContentRecordPublic, status_code=status.HTTP_201_CREATED)
def upload(
    body: UploadCreate,
    request: Request,
    session: SessionDep,
    uploads_dir: UploadsDirDep,
    clock: ClockDep,
    key_hash: ApiKeyDep,
) -> Any:
    """
    上传单个 HTML 文档或 ZIP 包，返回分配到的 slug 与访问地址。
    """
    pipeline = IngestionPipeline(session, uploads_dir=uploads_dir, clock=clock)
    options = UploadOptions(
        slug=body.slug,
        description=body.description,
        duration=body.duration,
        password=body.password,
        original_name=body.filename,
    )
    if body.html is not None:
        record = pipeline.ingest_document(body.html, options, key_hash)
    else:
        record = pipeline.ingest_bundle(body.zip_bytes(), options, key_hash)
    return records.to_public(record, clock(), _base_url(request), key_hash)


@router.put("/upload/{slug}", response_model=ContentRecordPublic)
def replace(
    slug: str,
    body: UploadUpdate,
    request: Request,
    session: SessionDep,
    uploads_dir: UploadsDirDep,
    clock: ClockDep,
    key_hash: ApiKeyDep,
) -> Any:
    """
    替换已有 slug 背后的内容，slug 与 id 不变。
    """
    pipeline = IngestionPipeline(session, uploads_dir=uploads_dir, clock=clock)
    options = UpdateOptions(
        **body.model_dump(include={"description", "duration", "password"}, exclude_unset=True)
    )
    if body.html is not None:
        record = pipeline.replace_document(slug, body.html, options, key_hash)
    else:
        record = pipeline.replace_bundle(slug, body.zip_bytes(), options, key_hash)
    return records.to_public(record, clock(), _base_url(request), key_hash)


@router.get("/file/{slug}", response_model=ContentRecordPublic)
def read_file(
    slug: str, request: Request, session: SessionDep, clock: ClockDep, key_hash: ApiKeyDep
) -> Any:
    record = records.get_record(session=session, slug=slug)
    return records.to_public(record, clock(), _base_url(request), key_hash)


@router.delete("/file/{slug}")
def delete_file(
    slug: str, session: SessionDep, uploads_dir: UploadsDirDep, key_hash: ApiKeyDep
) -> Any:
    records.delete_record(
        session=session, slug=slug, uploads_dir=uploads_dir, owner_key_hash=key_hash
    )
    return {"success": True, "message": "File deleted successfully"}


@router.post("/archive/{slug}")
def archive_file(slug: str, session: SessionDep, key_hash: ApiKeyDep) -> Any:
    records.set_archived(session=session, slug=slug, archived=True)
    return {"success": True, "message": "File archived successfully"}


@router.post("/unarchive/{slug}")
def unarchive_file(slug: str, session: SessionDep, key_hash: ApiKeyDep) -> Any:
    records.set_archived(session=session, slug=slug, archived=False)
    return {"success": True, "message": "File unarchived successfully"}


@router.get("/check-slug/{slug}", response_model=SlugAvailability)
def check_slug(slug: str, session: SessionDep, key_hash: ApiKeyDep) -> Any:
    return records.check_slug(session=session, slug=slug)


@router.get("/files", response_model=ContentRecordsPublic)
def list_files(
    request: Request,
    session: SessionDep,
    clock: ClockDep,
    key_hash: ApiKeyDep,
    search: str = "",
    skip: int = 0,
    limit: int = 100,
) -> Any:
    """
    按创建时间倒序列出文件，可按 slug 或描述搜索。
    """
    found, count = crud.list_records(session=session, search=search, skip=skip, limit=limit)
    now = clock()
    base_url = _base_url(request)
    return ContentRecordsPublic(
        data=[records.to_public(r, now, base_url, key_hash) for r in found], count=count
    )


@router.get("/stats", response_model=StorageStats)
def storage_stats(session: SessionDep, clock: ClockDep, key_hash: ApiKeyDep) -> Any:
    return crud.get_storage_stats(session=session, now=clock())
