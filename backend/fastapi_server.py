"""
FastAPI Server for the Character Forge rules engine
- Lifespan loads settings, logging, the rule set and the character store
- Request tracking middleware and one JSON error format for every handler
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from loguru import logger

from character.exceptions import CharacterForgeError
from config.logging_config import configure_logging
from config.settings import Settings, get_settings
from fastapi_core.exceptions import CharacterForgeHTTPException, ImportValidationException, engine_error_status
from fastapi_core.session_registry import SessionRegistry
from fastapi_models import ErrorResponse
from fastapi_routers import characters, session, system


ALLOWED_ORIGINS = [
    "http://localhost:3000",      # Dev mode
    "http://localhost:5173",      # Vite dev server
]


class RequestTrackingMiddleware(BaseHTTPMiddleware):
    """Add request ID and timing for better error tracking"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        logger.info(f"Request {request_id}: {request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)")
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"
        return response


def _error_response(request: Request, status_code: int, error: str, detail, **extra) -> JSONResponse:
    content = ErrorResponse(
        error=error,
        detail=detail,
        request_id=getattr(request.state, 'request_id', None),
    ).model_dump()
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI):
    """Map engine and HTTP errors onto the shared error format"""

    @app.exception_handler(CharacterForgeError)
    def engine_error_handler(request: Request, exc: CharacterForgeError):
        status_code, error = engine_error_status(exc)
        if status_code >= 500:
            logger.error(f"Rules engine error on {request.url}: {exc}")
        else:
            logger.warning(f"Rejected request on {request.url}: {exc}")
        return _error_response(request, status_code, error, str(exc))

    @app.exception_handler(ImportValidationException)
    def import_validation_handler(request: Request, exc: ImportValidationException):
        logger.warning(f"Invalid import payload: {exc.message}")
        return _error_response(request, exc.status_code, exc.error, exc.message, violations=exc.violations)

    @app.exception_handler(CharacterForgeHTTPException)
    def http_layer_handler(request: Request, exc: CharacterForgeHTTPException):
        logger.info(f"{exc.error} on {request.url}: {exc.message}")
        return _error_response(request, exc.status_code, exc.error, exc.message)

    @app.exception_handler(RequestValidationError)
    def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url}: {exc.errors()}")
        return _error_response(
            request, status.HTTP_422_UNPROCESSABLE_ENTITY, "validation_error",
            "Invalid request data", errors=jsonable_errors(exc)
        )

    @app.exception_handler(StarletteHTTPException)
    def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTP {exc.status_code} on {request.url}: {exc.detail}")
        return _error_response(request, exc.status_code, "http_error", exc.detail)

    @app.exception_handler(Exception)
    def global_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.url}: {exc}")
        return _error_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_server_error",
            "An unexpected error occurred"
        )


def jsonable_errors(exc: RequestValidationError):
    """Validation errors with the non-serializable context stripped"""
    return [
        {'loc': list(err.get('loc', ())), 'msg': err.get('msg'), 'type': err.get('type')}
        for err in exc.errors()
    ]


def create_app(settings: Optional[Settings] = None, registry: Optional[SessionRegistry] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Runtime settings, the process-wide ones when omitted
        registry: Prebuilt services; built from settings at startup when omitted
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, log_to_files=settings.log_to_files)
        logger.info("FastAPI server starting up...")
        app.state.settings = settings
        app.state.registry = registry or SessionRegistry.from_settings(settings)
        await app.state.registry.start()
        logger.info(f"Rules engine ready: {app.state.registry.get_status()}")

        yield

        logger.info("FastAPI server shutting down...")
        await app.state.registry.stop()

    app = FastAPI(
        title="Character Forge Rules Engine API",
        description="Derivation and mutation rules engine for 5th edition characters",
        version=system.VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestTrackingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(system.router, prefix="/api", tags=["system"])
    app.include_router(session.router, prefix="/api", tags=["session"])
    app.include_router(characters.router, prefix="/api", tags=["characters"])
    return app


def main():
    """Main entry point for the FastAPI server"""
    settings = get_settings()
    configure_logging(settings.log_level, log_to_files=settings.log_to_files)
    logger.info(f"Server configuration: {settings.host}:{settings.port} (debug={settings.debug})")

    try:
        uvicorn.run(
            create_app(settings),
            host=settings.host,
            port=settings.port,
            log_level="info" if settings.debug else "warning",
            reload=False,
        )
    except Exception as e:
        logger.error(f"Failed to start FastAPI server: {e}")
        raise


if __name__ == "__main__":
    main()
