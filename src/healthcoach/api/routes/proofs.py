"""Threshold proof routes."""
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from healthcoach.api.deps import get_store
from healthcoach.models.common import RequirementType
from healthcoach.proofs.verifier import ProofVerifier

router = APIRouter()


class ProofRequest(BaseModel):
    user_id: str
    requirement_type: RequirementType
    threshold: float
    days: int = Field(7, gt=0, le=365)


@router.post("/eligibility")
async def check_eligibility(request: ProofRequest, store=Depends(get_store)):
    result = await ProofVerifier(store).check_eligibility(
        request.user_id, request.requirement_type, request.threshold, request.days
    )
    return {"eligible": result.eligible, "actual_value": result.actual_value}


@router.post("/generate")
async def generate_proof(request: ProofRequest, store=Depends(get_store)):
    result = await ProofVerifier(store).generate_proof(
        request.user_id, request.requirement_type, request.threshold, request.days
    )
    return {"eligible": result.eligible, "message": result.message, **result.award_payload()}
