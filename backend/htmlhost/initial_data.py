import logging

from htmlhost.core.db import engine, init_db

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# 中文：创建表与上传目录
def main() -> None:
    logger.info("Creating tables and storage directories")
    init_db(engine)
    logger.info("Metadata store initialized")


if __name__ == "__main__":
    main()
