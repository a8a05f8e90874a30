"""
Saved simulation endpoints. Listing is served through the response cache and a
content-hash validator, so repeated polls of an unchanged list revalidate
instead of rebuilding the payload.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from loguru import logger

from simdesk.models.database import get_db
from simdesk.models.entities import Simulation
from simdesk.models.schemas import SimulationCreate, SimulationResponse
from simdesk.routes.cached import cached_read
from simdesk.services.auth_service import get_current_user_id
from simdesk.services.cache_service import (
    UpstreamResponse, Validators, content_etag, normalize_path,
)

router = APIRouter(prefix="/api/simulations", tags=["simulations"])


@router.get("/", response_model=list[SimulationResponse])
async def list_simulations(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    async def query(validators: Validators) -> UpstreamResponse:
        result = await db.execute(
            select(Simulation)
            .where(Simulation.user_id == user_id)
            .order_by(Simulation.created_at.desc())
        )
        body = [
            SimulationResponse.model_validate(sim).model_dump(mode="json")
            for sim in result.scalars().all()
        ]
        etag = content_etag(body)
        if validators.etag == etag:
            return UpstreamResponse(not_modified=True)
        return UpstreamResponse(not_modified=False, body=body, etag=etag)

    # Keyed by user as well: the token travels in a header, not in the path.
    key = normalize_path(request.url.path, request.url.query, scope=user_id)
    return await cached_read(request, key, query)


@router.post("/", response_model=SimulationResponse, status_code=201)
async def create_simulation(
    req: SimulationCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    sim = Simulation(user_id=user_id, data=req.data, capital=req.capital)
    db.add(sim)
    await db.flush()
    await db.refresh(sim)

    logger.info(f"Saved simulation {sim.id} for user {user_id}")
    return sim
