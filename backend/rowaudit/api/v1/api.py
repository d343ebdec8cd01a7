from fastapi import APIRouter

from rowaudit.api.v1.endpoints import logs, revert, tables

api_router = APIRouter()

api_router.include_router(logs.router, prefix="/logs", tags=["logs"])
api_router.include_router(revert.router, prefix="/revert", tags=["revert"])
api_router.include_router(tables.router, prefix="/tables", tags=["tables"])
