"""Baseline compute and read routes."""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from healthcoach.analysis.baselines import BaselineComputer
from healthcoach.api.deps import get_store
from healthcoach.models.derived import MetricBaseline

router = APIRouter()


class ComputeRequest(BaseModel):
    user_id: str
    force: bool = False


@router.post("/compute")
async def compute_baselines(request: ComputeRequest, store=Depends(get_store)):
    """Recompute a user's baselines if the cooldown has passed (or force)."""
    computer = BaselineComputer(store)
    updated = await computer.update_if_needed(request.user_id, force=request.force)
    cached = await computer.get_cached_baselines(request.user_id) or {}
    return {"updated": updated, "baselines": list(cached.values())}


@router.get("/{user_id}", response_model=List[MetricBaseline])
async def get_baselines(user_id: str, store=Depends(get_store)):
    """Stored baselines, empty when none have been computed."""
    cached = await BaselineComputer(store).get_cached_baselines(user_id)
    return list(cached.values()) if cached else []
