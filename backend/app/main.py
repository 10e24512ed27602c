# backend/app/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from backend.app.api.rate_limit import RateLimitExceeded, RateLimiter
from backend.app.api.v1.router import api_router
from backend.app.core.config import Settings, get_settings
from backend.app.core.errors import AppError, CommonErrorCode
from backend.app.core.logging import configure_logging
from backend.app.db.session import Database

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """AppError → {"message", "code"} with the status of its kind."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        headers = exc.headers if isinstance(exc, RateLimitExceeded) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("event=unhandled_error path=%s", request.url.path)
        return JSONResponse(
            status_code=CommonErrorCode.INTERNAL.status_code,
            content={"message": CommonErrorCode.INTERNAL.default_message, "code": CommonErrorCode.INTERNAL.code},
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.LOG_LEVEL)

    # Engine lifecycle follows the process: built at startup, disposed at shutdown
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = Database(settings)
        app.state.database = database
        await database.create_all()
        logger.info("event=startup environment=%s", settings.ENVIRONMENT)
        yield
        await database.dispose()
        logger.info("event=shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.webhook_limiter = RateLimiter(settings.WEBHOOK_RATE_LIMIT, namespace="webhook")

    if settings.BACKEND_CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.BACKEND_CORS_ORIGINS,
            # Refresh cookie must be sent cross-origin from the frontend
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_V1_STR)

    @app.get("/")
    def root():
        return {"message": "Welcome to Stellar Auth API"}

    return app


app = create_app()
