from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config.settings import settings
from .core.errors import ConfigError, EngineError, SearchGateError, ValidationError
from .core.logging import configure_logging, get_logger
from .routes import autocomplete_routes, health_routes, search_routes
from .services.container import get_container

configure_logging()
logger = get_logger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.api_title,
    description=settings.api_description,
    version=settings.api_version
)

# Include routers with API prefix; health first so /health/detailed is not read as /{type}/...
app.include_router(health_routes.router, prefix="/api", tags=["health"])
app.include_router(search_routes.router, prefix="/api", tags=["search"])
app.include_router(autocomplete_routes.router, prefix="/api", tags=["autocomplete"])


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("request_invalid", path=request.url.path, details=exc.details)
    return JSONResponse(status_code=400, content=exc.to_dict())


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    logger.error("engine_failed", path=request.url.path, status=exc.status_code, details=exc.details)
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.error("config_invalid", path=request.url.path, details=exc.details)
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.exception_handler(SearchGateError)
async def search_gate_error_handler(request: Request, exc: SearchGateError):
    logger.error("request_failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=500, content=exc.to_dict())


@app.get("/")
async def root():
    """Root endpoint with API information"""
    return {
        "message": settings.api_title,
        "version": settings.api_version,
        "description": settings.api_description,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/health",
        "endpoints": {
            "search": "/api/search",
            "autocomplete": "/api/autocomplete",
            "suggestedQueries": "/api/suggestedQueries",
            "didYouMean": "/api/didYouMean",
            "view": "/api/view",
            "health": "/api/health"
        },
        "instance": settings.instance_name
    }


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("starting", title=settings.api_title, version=settings.api_version,
                elasticsearch_url=settings.elasticsearch_url, cache_enabled=bool(settings.redis_url))

    # Building the container normalizes the search config; a bad config fails startup here
    container = get_container()

    health = await container.health_service.get_health_status()
    logger.info("index_health", status=health.status, indexes_available=health.indexes_available,
                cache_available=health.cache_available)


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("shutting_down", title=settings.api_title)
    await get_container().close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
