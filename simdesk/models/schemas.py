"""
Pydantic request / response schemas for the API.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime


# ── Simulations ──────────────────────────────────────────
class SimulationCreate(BaseModel):
    data: Dict[str, Any]
    capital: float


class SimulationResponse(BaseModel):
    id: str
    data: Dict[str, Any]
    capital: float
    created_at: datetime

    class Config:
        from_attributes = True


# ── Support chat ─────────────────────────────────────────
class AskRequest(BaseModel):
    message: str = Field(max_length=2000)


class AskResponse(BaseModel):
    message: str
    reply: str
    matched: bool
    score: float
    question: Optional[str] = None
