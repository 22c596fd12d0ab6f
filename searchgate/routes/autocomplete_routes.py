from fastapi import APIRouter, Depends, Request

from ..services.container import ServiceContainer, get_container
from .inputs import body_input, query_input, request_headers

router = APIRouter()


@router.get("/autocomplete")
async def autocomplete_get(request: Request, container: ServiceContainer = Depends(get_container)):
    """
    Get autocomplete suggestions for partial input.

    Features:
    - Fuzzy, edge-gram and phonetic matching per configured field
    - Vernacular input matched against unicode fields
    - Queries every autocomplete type when no type is given
    """
    return await container.autocomplete_service.autocomplete(request_headers(request), query_input(request))


@router.post("/autocomplete")
async def autocomplete_post(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.autocomplete(request_headers(request), await body_input(request))


@router.get("/suggestedQueries")
async def suggested_queries_get(request: Request, container: ServiceContainer = Depends(get_container)):
    """Autocomplete results of all types merged into one list, cut at the relevancy drop-off"""
    return await container.autocomplete_service.suggested_queries(request_headers(request), query_input(request))


@router.post("/suggestedQueries")
async def suggested_queries_post(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.suggested_queries(request_headers(request),
                                                                  await body_input(request))


@router.get("/explain/autocomplete")
async def explain_autocomplete_get(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.explain_autocomplete(request_headers(request), query_input(request))


@router.post("/explain/autocomplete")
async def explain_autocomplete_post(request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.explain_autocomplete(request_headers(request),
                                                                     await body_input(request))


@router.get("/didYouMean")
async def did_you_mean(request: Request, container: ServiceContainer = Depends(get_container)):
    """Spelling suggestions"""
    return await container.autocomplete_service.did_you_mean(request_headers(request), query_input(request))


@router.get("/{type}/autocomplete")
async def typed_autocomplete_get(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.autocomplete(request_headers(request),
                                                             query_input(request, type=type))


@router.post("/{type}/autocomplete")
async def typed_autocomplete_post(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.autocomplete(request_headers(request),
                                                             await body_input(request, type=type))


@router.get("/{type}/suggestedQueries")
async def typed_suggested_queries_get(type: str, request: Request,
                                      container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.suggested_queries(request_headers(request),
                                                                  query_input(request, type=type))


@router.post("/{type}/suggestedQueries")
async def typed_suggested_queries_post(type: str, request: Request,
                                       container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.suggested_queries(request_headers(request),
                                                                  await body_input(request, type=type))


@router.get("/{type}/didYouMean")
async def typed_did_you_mean(type: str, request: Request, container: ServiceContainer = Depends(get_container)):
    return await container.autocomplete_service.did_you_mean(request_headers(request),
                                                             query_input(request, type=type))
