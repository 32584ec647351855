from fastapi import APIRouter

from showcase.api.v1 import catalog
from showcase.db.session import is_healthy
from showcase.schemas.error import ErrorCode, ErrorResponse

api_router = APIRouter()

api_router.include_router(catalog.router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@api_router.get("/health/ready", tags=["health"])
async def readiness():
    if not await is_healthy():
        return ErrorResponse(detail="Store unavailable", code=ErrorCode.store_unavailable).to_response(503)
    return {"status": "ready"}
