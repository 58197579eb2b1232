"""
FastAPI service exposing cache-first document queries and batched writes.

Redis (or in-memory) caching in front of Firestore (or an in-memory store),
wired through the dependency injection container.
"""

# Performance: Install uvloop if available (Linux/macOS only)
try:
    import uvloop
    uvloop.install()
except ImportError:
    pass  # Windows - uvloop not available, use default asyncio

from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, ORJSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from constants import SERVICE_NAME, SERVICE_VERSION
from core.container import container
from core.config import Settings
from core.health import set_startup_time
from core.logging import configure_logging, get_logger
from routers import optimization

# Initialize settings and logging
settings = Settings()
configure_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    logger.info(f"Starting {SERVICE_NAME}", version=SERVICE_VERSION)
    set_startup_time()

    await container.document_store().startup()
    await container.cache().startup()
    await container.cache_sweeper().start()

    logger.info("Services started successfully",
                cache_backend=container.cache().backend_name,
                document_store=settings.document_store)
    yield

    # Shutdown
    await container.cache_sweeper().stop()
    await container.cache().disconnect()
    await container.document_store().shutdown()
    logger.info("Services shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=SERVICE_NAME,
    version=SERVICE_VERSION,
    description="Cache-first document queries, batched writes and query analysis",
    lifespan=lifespan,
    default_response_class=ORJSONResponse
)


class CatchAllExceptionsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {type(e).__name__}: {str(e)}",
                         path=request.url.path, exc_info=True)
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "message": "Internal server error",
                    "error": f"{type(e).__name__}: {str(e)}",
                }
            )


# Exception handler middleware goes BEFORE CORS to catch all errors
app.add_middleware(CatchAllExceptionsMiddleware)

logger.info("Configuring CORS middleware",
            origins_count=len(settings.cors_origins),
            origins=settings.cors_origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

app.include_router(optimization.router)


@app.get("/health")
async def health_check():
    """Liveness check. Per-service detail lives at /optimization/health."""
    cache = container.cache()
    return {
        "status": "OK",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": "development" if settings.is_development else "production",
        "cache_backend": cache.backend_name,
        "redis_connected": cache.is_connected,
        "cache_sweeper": container.cache_sweeper().running,
        "document_store": settings.document_store,
        "timestamp": datetime.now().isoformat()
    }


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting {SERVICE_NAME}",
                host=settings.host, port=settings.port, debug=settings.debug)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_dirs=["."] if settings.debug else None,
        reload_excludes=["*.pyc", "__pycache__", "*.log"] if settings.debug else None,
        workers=1 if settings.debug else settings.workers
    )
