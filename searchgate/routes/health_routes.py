from fastapi import APIRouter, Depends

from ..models.schemas import HealthResponse
from ..services.container import ServiceContainer, get_container

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(container: ServiceContainer = Depends(get_container)):
    """
    Health check endpoint to verify system status.

    Returns:
    - Status of the application
    - Timestamp
    - Configured types
    - List of available Elasticsearch indexes
    - Whether the response cache is reachable
    """
    return await container.health_service.get_health_status()


@router.get("/health/detailed")
async def detailed_health_check(container: ServiceContainer = Depends(get_container)):
    """
    Detailed health check with configuration information.

    Returns detailed information about:
    - Elasticsearch URL and configured indexes
    - Search, autocomplete and view types
    - API information
    """
    return await container.health_service.get_detailed_status()
