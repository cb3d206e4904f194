"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from classroll.api.v1.router import api_router
from classroll.core.config import settings
from classroll.core.database import build_engine, build_session_factory, init_models
from classroll.core.exceptions import AppException, InternalError
from classroll.middleware.logging import RequestLoggingMiddleware
from classroll.repositories.base import AttendanceRepository
from classroll.repositories.sql import SQLAlchemyRepository
from classroll.services.sheets import AttendanceNotifier, SheetsNotifier
from classroll.services.store import AttendanceStore

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Suppress noisy SQLAlchemy and other library logs
logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("python_multipart").setLevel(logging.WARNING)
logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
logging.getLogger("urllib3").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def create_application(
    repository: AttendanceRepository | None = None,
    notifier: AttendanceNotifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without a repository the app connects to ``DATABASE_URL``; without a
    notifier it syncs to Google Sheets only when that is configured.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

        engine = None
        store_repository = repository
        if store_repository is None:
            engine = build_engine()
            if settings.AUTO_INIT_DB:
                await init_models(engine)
                logger.info("Database tables ready")
            store_repository = SQLAlchemyRepository(build_session_factory(engine))

        store_notifier = notifier if notifier is not None else SheetsNotifier.from_settings(settings)

        store = AttendanceStore(store_repository, notifier=store_notifier)
        app.state.store = store
        await store.load()

        yield

        logger.info("Shutting down application")
        if isinstance(store_notifier, SheetsNotifier):
            await store_notifier.drain()
            store_notifier.close()
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
Classroom attendance tracker.

## Features

- **Classes**: create, rename and delete classes (deleting cascades)
- **Students**: add students one by one or import them from CSV
- **Attendance**: everyone is present by default; toggle individual absences per date
- **Google Sheets sync**: optional append of every attendance change to a spreadsheet

## Error Handling

All errors follow a standard format:
```json
{
  "success": false,
  "error": {
    "code": "ERROR_CODE",
    "message": "Human readable message",
    "details": {}
  }
}
```
        """,
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middlewares
    app.add_middleware(RequestLoggingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.detail,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={
                "success": False,
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": {"errors": jsonable_errors(exc)},
                },
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        error = InternalError("An internal server error occurred")
        return JSONResponse(
            status_code=error.status_code,
            content=error.detail,
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint for load balancers and monitoring."""
        store = getattr(request.app.state, "store", None)
        return {
            "status": "healthy",
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "loading": store.loading if store is not None else True,
        }

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without the non-serializable ``ctx`` payloads."""
    return [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]


# Create app instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "classroll.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
