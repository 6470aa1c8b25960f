from collections.abc import Generator
from pathlib import Path
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlmodel import Session

from htmlhost.core.clock import Clock, utcnow
from htmlhost.core.config import settings
from htmlhost.core.db import engine
from htmlhost.core.security import hash_api_key, is_valid_api_key


def get_db() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def get_uploads_dir() -> Path:
    return settings.UPLOADS_DIR


def get_clock() -> Clock:
    return utcnow


SessionDep = Annotated[Session, Depends(get_db)]
UploadsDirDep = Annotated[Path, Depends(get_uploads_dir)]
ClockDep = Annotated[Clock, Depends(get_clock)]


def get_api_key_hash(
    x_api_key: Annotated[str | None, Header()] = None,
    authorization: Annotated[str | None, Header()] = None,
) -> str:
    # 先检查 X-API-Key，再回退到 Authorization: Bearer
    api_key = x_api_key
    if not api_key and authorization:
        parts = authorization.split(" ")
        if len(parts) == 2 and parts[0].lower() == "bearer":
            api_key = parts[1]

    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key required. Use X-API-Key header or Authorization: Bearer <key>",
        )
    if not settings.API_KEYS:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API not configured. Set API_KEYS environment variable.",
        )
    if not is_valid_api_key(api_key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API key")
    return hash_api_key(api_key)


ApiKeyDep = Annotated[str, Depends(get_api_key_hash)]
