from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import AnyUrl, BeforeValidator, HttpUrl, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

# backend 根目录
BASE_DIR = Path(__file__).resolve().parent.parent.parent


def parse_list(v: Any) -> list[str] | str:
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # 使用 backend 目录上一级的 .env 文件
        env_file="../.env",
        env_ignore_empty=True,
        extra="ignore",
    )
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "htmlhost"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    SENTRY_DSN: HttpUrl | None = None

    BACKEND_CORS_ORIGINS: Annotated[
        list[AnyUrl] | str, BeforeValidator(parse_list)
    ] = []

    @computed_field  # type: ignore[prop-decorator]
    @property
    def all_cors_origins(self) -> list[str]:
        return [str(origin).rstrip("/") for origin in self.BACKEND_CORS_ORIGINS]

    # Keys accepted by the JSON API; stored only as SHA-256 hashes on records
    API_KEYS: Annotated[list[str] | str, BeforeValidator(parse_list)] = []

    DATA_DIR: Path = BASE_DIR / "data"
    DATABASE_URL: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def UPLOADS_DIR(self) -> Path:
        return self.DATA_DIR / "uploads"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"sqlite:///{self.DATA_DIR / 'hosting.db'}"

    MAX_HTML_SIZE: int = 10 * 1024 * 1024
    MAX_ZIP_SIZE: int = 50 * 1024 * 1024
    BCRYPT_ROUNDS: int = 12

    # 0 disables the in-process reaper loop
    REAPER_INTERVAL_SECONDS: int = 60 * 60
    ORPHAN_GRACE_SECONDS: int = 60 * 60
    RECONCILE_ORPHANS: bool = False


settings = Settings()  # type: ignore
