"""
Read-through mirror of the configured upstream JSON API.
"""

from fastapi import APIRouter, HTTPException, Request

from simdesk.routes.cached import cached_read
from simdesk.services.cache_service import Validators, normalize_path
from simdesk.services.upstream_service import UpstreamClient

router = APIRouter(prefix="/api/mirror", tags=["mirror"])


@router.get("/{path:path}")
async def mirror(path: str, request: Request):
    upstream: UpstreamClient = request.app.state.upstream
    if not upstream.configured:
        raise HTTPException(status_code=503, detail="Upstream not configured")

    params = dict(request.query_params)

    async def fetch(validators: Validators):
        return await upstream.fetch(path, validators, params=params or None)

    key = normalize_path(request.url.path, request.url.query)
    return await cached_read(request, key, fetch)
