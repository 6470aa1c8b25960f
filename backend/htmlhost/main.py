import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from starlette.middleware.cors import CORSMiddleware

from htmlhost.api.main import api_router
from htmlhost.api.routes import view
from htmlhost.core.config import settings
from htmlhost.core.db import dispose_db, init_db
from htmlhost.core.errors import HostingError, Internal
from htmlhost.worker_tasks.reaper import reap_periodically

logger = logging.getLogger(__name__)


# 自定义生成唯一ID函数
def custom_generate_unique_id(route: APIRoute) -> str:
    return f"{route.tags[0]}-{route.name}" if route.tags else route.name


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 启动：初始化数据库并启动定期清理任务
    init_db()
    reaper_task = None
    if settings.REAPER_INTERVAL_SECONDS > 0:
        reaper_task = asyncio.create_task(reap_periodically(settings.REAPER_INTERVAL_SECONDS))
    yield
    # 关闭：停止清理任务并释放连接
    if reaper_task is not None:
        reaper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await reaper_task
    dispose_db()


if settings.SENTRY_DSN and settings.ENVIRONMENT != "local":
    sentry_sdk.init(dsn=str(settings.SENTRY_DSN), enable_tracing=True)

app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)


@app.exception_handler(HostingError)
async def hosting_error_handler(request: Request, exc: HostingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    error = Internal()
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


# 添加 CORS 中间件
# 设置所有允许的 CORS 源
if settings.all_cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.all_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router, prefix=settings.API_V1_STR)
# 页面路由是通配的，必须最后注册
app.include_router(view.router)
