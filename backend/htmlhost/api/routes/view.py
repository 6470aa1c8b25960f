import logging
from html import escape
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from htmlhost import storage
from htmlhost.api.deps import ClockDep, SessionDep
from htmlhost.core.errors import NotFound
from htmlhost.core.security import verify_password
from htmlhost.lifecycle import records
from htmlhost.models import ContentRecord

router = APIRouter(tags=["view"])
logger = logging.getLogger(__name__)

basic_auth = HTTPBasic(auto_error=False, realm="Protected page")

# 托管页面的安全响应头
SECURITY_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "public, max-age=3600",
    "Content-Security-Policy": (
        "default-src * 'unsafe-inline' 'unsafe-eval' data: blob:; "
        "object-src 'none'; base-uri 'self';"
    ),
}

# 受密码保护的内容不能进入共享缓存
PRIVATE_HEADERS = {**SECURITY_HEADERS, "Cache-Control": "private, no-store"}


def error_page(code: int, title: str, message: str) -> HTMLResponse:
    body = f"""<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>Error - HTML Hosting</title></head>
<body>
  <h1>{code} - {escape(title)}</h1>
  <p>{escape(message)}</p>
</body>
</html>"""
    return HTMLResponse(body, status_code=code)


def _authorized(record: ContentRecord, credentials: HTTPBasicCredentials | None) -> bool:
    if record.password_hash is None:
        return True
    if credentials is None:
        return False
    return verify_password(credentials.password, record.password_hash)


def _serve(
    slug: str,
    file_path: str,
    session: SessionDep,
    clock: ClockDep,
    credentials: HTTPBasicCredentials | None,
) -> Response:
    try:
        record = records.resolve_servable(session=session, slug=slug, now=clock())
        if not _authorized(record, credentials):
            return Response(
                "Password required",
                status_code=status.HTTP_401_UNAUTHORIZED,
                headers={"WWW-Authenticate": 'Basic realm="Protected page"'},
            )
        target = records.resolve_asset(record, file_path)
    except NotFound as e:
        title = "Content Expired" if e.status_code == status.HTTP_410_GONE else "Not Found"
        return error_page(e.status_code, title, e.message)

    if target == record.storage_dir.resolve() / storage.ENTRY_POINT:
        records.record_access(session=session, slug=record.slug)
        logger.info(f"File served: {record.slug}")
    headers = PRIVATE_HEADERS if record.password_hash else SECURITY_HEADERS
    return FileResponse(target, headers=headers)


@router.get("/{slug}", include_in_schema=False)
def view_root_redirect(slug: str) -> RedirectResponse:
    # 相对资源路径需要结尾斜杠
    return RedirectResponse(f"/{slug}/", status_code=status.HTTP_301_MOVED_PERMANENTLY)


@router.get("/{slug}/", include_in_schema=False)
def view_page(
    slug: str,
    session: SessionDep,
    clock: ClockDep,
    credentials: Annotated[HTTPBasicCredentials | None, Depends(basic_auth)],
) -> Response:
    return _serve(slug, "", session, clock, credentials)


@router.get("/{slug}/{file_path:path}", include_in_schema=False)
def view_asset(
    slug: str,
    file_path: str,
    session: SessionDep,
    clock: ClockDep,
    credentials: Annotated[HTTPBasicCredentials | None, Depends(basic_auth)],
) -> Response:
    return _serve(slug, file_path, session, clock, credentials)
