from fastapi import APIRouter

from htmlhost.api.routes import pages, utils

api_router = APIRouter()
api_router.include_router(utils.router)
api_router.include_router(pages.router, tags=["pages"])
