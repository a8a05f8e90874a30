"""
Shared plumbing for cached GET endpoints: response cache first, then the
conditional-cache gateway.
"""

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from simdesk.config import settings
from simdesk.services.cache_service import (
    ConditionalCache, FetchResult, FetchStatus, Fetcher, ResponseCache,
)


def get_response_cache(request: Request) -> ResponseCache:
    return request.app.state.response_cache


def get_conditional_cache(request: Request) -> ConditionalCache:
    return request.app.state.conditional_cache


def _validator_headers(result: FetchResult) -> dict:
    headers = {}
    if result.validators.etag:
        headers["ETag"] = result.validators.etag
    if result.validators.last_modified:
        headers["Last-Modified"] = result.validators.last_modified
    return headers


def render(request: Request, result: FetchResult, outcome: str) -> Response:
    headers = {"X-Cache": outcome, **_validator_headers(result)}

    if result.status is FetchStatus.NO_CONTENT:
        return Response(status_code=204, headers=headers)

    client_tag = request.headers.get("if-none-match")
    if client_tag and result.validators.etag and client_tag == result.validators.etag:
        return Response(status_code=304, headers=headers)

    return JSONResponse(content=result.body, headers=headers)


async def cached_read(request: Request, key: str, fetcher: Fetcher) -> Response:
    response_cache = get_response_cache(request)
    hit = response_cache.get(key)
    if hit is not None:
        return render(request, hit, "HIT")

    result = await get_conditional_cache(request).fetch(
        key, fetcher, timeout=settings.UPSTREAM_TIMEOUT_SECONDS
    )
    if result.status is not FetchStatus.NO_CONTENT:
        response_cache.put(key, result)

    return render(request, result, "MISS" if result.is_fresh else "REVALIDATED")
