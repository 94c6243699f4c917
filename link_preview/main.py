"""
Link Preview Service - FastAPI Application.

Renders pages in a headless browser, extracts link-preview metadata and
caches the result in Redis so repeated requests skip rendering.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .errors import PreviewError, ValidationError
from .services.cache_manager import cache_manager
from .api.v1.routers import cache as cache_router
from .api.v1.routers import preview as preview_router
from .api.v1.routers import system as system_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("link_preview.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - connect and disconnect the cache."""
    # Startup
    logger.info("Starting Link Preview Service")
    await cache_manager.wait_until_ready()
    yield
    # Shutdown
    logger.info("Shutting down Link Preview Service")
    await cache_manager.close()


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    debug=settings.debug,
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_credentials,
    allow_methods=settings.cors_methods,
    allow_headers=settings.cors_headers,
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})


@app.exception_handler(PreviewError)
async def preview_error_handler(request: Request, exc: PreviewError) -> JSONResponse:
    logger.error(f"Failed {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "Failed to generate preview",
            "details": str(exc),
            "type": exc.error_type,
        },
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": str(exc.errors())},
    )


# Include routers
app.include_router(system_router.router, prefix="/api/v1")
app.include_router(preview_router.router, prefix="/api/v1")
app.include_router(cache_router.router, prefix="/api/v1")

# Root-level routes keep the original unversioned paths
app.include_router(system_router.router, prefix="")
app.include_router(preview_router.router, prefix="")
app.include_router(cache_router.router, prefix="")


def run() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "link_preview.main:app",
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    run()
