"""Pattern detection and read routes."""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from healthcoach.analysis.correlation import CorrelationEngine
from healthcoach.api.deps import get_store
from healthcoach.models.derived import DetectedPattern

router = APIRouter()


class DetectRequest(BaseModel):
    user_id: str
    force: bool = False


@router.post("/detect")
async def detect_patterns(request: DetectRequest, store=Depends(get_store)):
    """
    Run detection if patterns are stale (or force).

    `detected` is null when the stored patterns were still fresh.
    """
    engine = CorrelationEngine(store)
    detected = await engine.detect_patterns_if_needed(request.user_id, force=request.force)
    return {
        "detected": None if detected is None else len(detected),
        "patterns": await engine.get_active_patterns(request.user_id),
    }


@router.get("/{user_id}", response_model=List[DetectedPattern])
async def get_patterns(user_id: str, store=Depends(get_store)):
    """Active patterns, most confident first."""
    return await CorrelationEngine(store).get_active_patterns(user_id)
