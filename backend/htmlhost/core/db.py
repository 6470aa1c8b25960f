import logging

from sqlalchemy import Engine
from sqlmodel import SQLModel, create_engine

from htmlhost.core.config import settings
from htmlhost.core.paths import ensure_storage_dirs

logger = logging.getLogger(__name__)


def make_engine(url: str) -> Engine:
    connect_args = {}
    if url.startswith("sqlite"):
        # 请求在线程池中执行，同一连接可能跨线程使用
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(url, connect_args=connect_args)


engine = make_engine(str(settings.SQLALCHEMY_DATABASE_URI))


# 确保在初始化数据库之前导入所有 SQLModel 模型 (htmlhost.models)
# 否则，SQLModel 可能无法正确初始化表


def init_db(db_engine: Engine = engine) -> None:
    from htmlhost import models  # noqa: F401

    ensure_storage_dirs()
    SQLModel.metadata.create_all(db_engine)
    logger.info("Metadata store ready")


def dispose_db(db_engine: Engine = engine) -> None:
    db_engine.dispose()
    logger.info("Metadata store closed")
