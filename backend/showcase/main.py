import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from showcase.api.v1 import api_router
from showcase.core.config import settings
from showcase.core.logging_config import configure_logging
from showcase.core.sentry import init_sentry
from showcase.middleware import RequestLoggingMiddleware
from showcase.schemas.error import STORE_ERROR_DETAIL, ErrorCode, ErrorResponse
from showcase.services.resilience import StoreUnavailableError

logger = logging.getLogger(__name__)


def get_application() -> FastAPI:
    configure_logging(settings.log_json, settings.log_level)
    init_sentry()
    tags_metadata = [
        {"name": "catalog", "description": "Products, media ingestion and listings"},
        {"name": "health", "description": "Liveness and store readiness"},
    ]
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        openapi_tags=tags_metadata,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(api_router, prefix="/api/v1")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return ErrorResponse(detail=jsonable_encoder(exc.detail)).to_response(exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = jsonable_encoder(exc.errors())
        return ErrorResponse(detail=errors, code=ErrorCode.validation_error).to_response(422)

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        return ErrorResponse(detail=STORE_ERROR_DETAIL, code=ErrorCode.store_unavailable).to_response(503)

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error("store_error", extra={"path": request.url.path, "error": str(exc)})
        return ErrorResponse(detail=STORE_ERROR_DETAIL, code=ErrorCode.store_error).to_response(503)

    return app


app = get_application()
