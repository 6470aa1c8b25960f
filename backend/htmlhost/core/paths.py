# htmlhost/core/paths.py
from pathlib import Path

from htmlhost.core.config import settings

# 数据根目录 (数据库文件 + 上传目录)
DATA_DIR: Path = settings.DATA_DIR
UPLOADS_DIR: Path = settings.UPLOADS_DIR


def ensure_storage_dirs() -> None:
    """Create the data and uploads directories if they are missing."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
