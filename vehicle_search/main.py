"""
Vehicle Search Microservice
Main FastAPI application
"""
import asyncio
import contextlib
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import sys

from vehicle_search import __version__
from vehicle_search.config import settings
from vehicle_search.dependencies import init_services, shutdown_services
from vehicle_search.router.search import router as search_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Vehicle Search",
    description="Conversational natural language search over a vehicle catalog",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(search_router)

_sweeper_task = None


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "Vehicle Search",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "vehicle-search",
        "version": __version__
    }


@app.get("/v1/health")
async def v1_health_check():
    """V1 health check endpoint"""
    return {
        "status": "ok",
        "service": "vehicle-search"
    }


@app.on_event("startup")
async def startup_event():
    """Startup event handler"""
    global _sweeper_task
    logger.info("Vehicle Search starting up...")
    logger.info(f"Environment: {'DEBUG' if settings.debug else 'PRODUCTION'}")
    logger.info(f"Backends: exact={settings.exact_backend}, semantic={settings.semantic_backend}")

    service = init_services()
    _sweeper_task = asyncio.create_task(
        service.context.run_sweeper(settings.session_sweep_interval_seconds)
    )
    logger.info("Startup complete!")


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event handler"""
    global _sweeper_task
    logger.info("Vehicle Search shutting down...")
    if _sweeper_task is not None:
        _sweeper_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _sweeper_task
        _sweeper_task = None
    await shutdown_services()


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc) if settings.debug else "An error occurred"
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vehicle_search.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level
    )
