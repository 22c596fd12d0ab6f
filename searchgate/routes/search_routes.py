from fastapi import APIRouter, Depends, Request

from ..services.container import ServiceContainer, get_container
from .inputs import body_input, query_input, request_headers

router = APIRouter()


@router.get("/search")
async def search_get(request: Request, container: ServiceContainer = Depends(get_container)):
    """
    Full-text search.

    Without a type (or with `*`) every configured search type is queried in one
    batch and the response groups results by type name.
    """
    return await container.search_service.search(request_headers(request), query_input(request))


@router.post("/search")
async def search_post(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.search_service.search(request_headers(request), await body_input(request))


@router.get("/explain/search")
async def explain_search_get(request: Request, container: ServiceContainer = Depends(get_container)):
    """Engine explanation of how document `id` scores for a search"""
    return await container.search_service.explain_search(request_headers(request), query_input(request))


@router.post("/explain/search")
async def explain_search_post(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.search_service.explain_search(request_headers(request), await body_input(request))


@router.get("/termVectors")
async def term_vectors(request: Request, container: ServiceContainer = Depends(get_container)):
    """Term vectors of one stored document"""
    return await container.search_service.term_vectors(request_headers(request), query_input(request))


@router.get("/view")
async def view_get(request: Request, container: ServiceContainer = Depends(get_container)):
    """
    All documents of a view type matching the filters.

    Pages through the whole index, so keep views to small types.
    """
    return await container.search_service.view(request_headers(request), query_input(request))


@router.post("/view")
async def view_post(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.search_service.view(request_headers(request), await body_input(request))


@router.get("/{type}/search")
async def typed_search_get(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    """Search restricted to one type"""
    return await container.search_service.search(request_headers(request), query_input(request, type=type))


@router.post("/{type}/search")
async def typed_search_post(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.search_service.search(request_headers(request), await body_input(request, type=type))


@router.get("/{type}/view")
async def typed_view_get(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.search_service.view(request_headers(request), query_input(request, type=type))


@router.post("/{type}/view")
async def typed_view_post(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.search_service.view(request_headers(request), await body_input(request, type=type))


@router.get("/{type}/{id}/termVectors")
async def typed_term_vectors(type: str, id: str, request: Request,
                             container: ServiceContainer = Depends(get_container)):
    return await container.search_service.term_vectors(request_headers(request),
                                                       query_input(request, type=type, id=id))
