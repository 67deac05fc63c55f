"""
Intent proof service API routes.

All endpoints are prefixed with /intent-proof-service.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.siwe import ADDRESS_PATTERN
from ..db.base import get_db
from .schemas import RecordProofRequest, VerifyProofRequest
from .services import ProofService

router = APIRouter(prefix="/intent-proof-service", tags=["Proofs"])


@router.post("/record", status_code=201)
async def record_proof(
    request: RecordProofRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Record a proof for a finalized campaign (hard auth)."""
    service = ProofService(db)
    proof = service.record(
        campaign_id=request.campaign_id,
        user_address=request.user_address,
        intent_category=request.intent_category,
        target_dapps=request.target_dapps,
        action_order=request.action_order,
        siwe=request.siwe,
        tx_hash=request.tx_hash,
    )
    return {"status": "success", "proof": proof.to_dict()}


@router.get("/get")
async def list_proofs(
    campaign_id: Optional[str] = Query(
        None, alias="campaignId", min_length=1, max_length=64
    ),
    user_address: Optional[str] = Query(
        None, alias="userAddress", pattern=ADDRESS_PATTERN
    ),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List proofs, optionally filtered by campaign and wallet, newest first."""
    service = ProofService(db)
    return {
        "proofs": service.list(
            campaign_id=campaign_id, user_address=user_address, limit=limit
        )
    }


@router.post("/verify")
async def verify_proof(
    request: VerifyProofRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Recompute a campaign hash and report whether a proof is stored."""
    service = ProofService(db)
    return service.verify(
        request.campaign_id, request.user_address, request.provided_hash
    )


@router.get("/stats")
async def proof_stats(
    user_address: Optional[str] = Query(
        None, alias="userAddress", pattern=ADDRESS_PATTERN
    ),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Aggregate proof statistics."""
    service = ProofService(db)
    return {"stats": service.stats(user_address)}
