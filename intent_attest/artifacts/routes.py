"""
Artifact service API routes.

All endpoints are prefixed with /artifact-service. Domain errors raised by the
service layer are rendered by the application's exception handlers.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db.base import get_db
from .schemas import (
    ArtifactCreate,
    AttachImageRequest,
    FinalizeRequest,
    GenerateRequest,
    VerifyArtifactRequest,
)
from .services import ArtifactService

router = APIRouter(prefix="/artifact-service", tags=["Artifacts"])


@router.post("/create", status_code=201)
async def create_artifact(
    request: ArtifactCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Create a new Draft artifact."""
    service = ArtifactService(db)
    artifact = service.create(
        wallet_address=request.wallet_address,
        campaign_id=request.campaign_id,
        campaign_type=request.campaign_type,
        image_style=request.image_style,
    )
    return {"status": "success", "campaign": artifact.to_dict()}


@router.get("/get")
async def get_artifact(
    id: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Get an artifact by ID."""
    service = ArtifactService(db)
    return {"campaign": service.require(id).to_dict()}


@router.post("/generate")
async def generate_caption(
    request: GenerateRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Validate a raw caption and store the compliant caption (soft auth)."""
    service = ArtifactService(db)
    artifact = service.generate(
        campaign_id=request.campaign_id,
        raw_caption=request.raw_caption,
        target_dapps=request.target_dapps,
        wallet_address=request.wallet_address,
        siwe=request.siwe,
    )
    return {
        "status": "success",
        "artifact": {
            "caption": artifact.caption,
            "captionHash": artifact.caption_hash,
            "campaignId": artifact.id,
        },
    }


@router.post("/attach-image")
async def attach_image(
    request: AttachImageRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Attach an image to an artifact that is not yet frozen (soft auth)."""
    service = ArtifactService(db)
    artifact = service.attach_image(
        campaign_id=request.campaign_id,
        image_url=request.image_url,
        wallet_address=request.wallet_address,
        siwe=request.siwe,
    )
    return {"status": "success", "campaign": artifact.to_dict()}


@router.post("/finalize")
async def finalize_artifact(
    request: FinalizeRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Freeze an artifact and compute its artifact hash (hard auth)."""
    service = ArtifactService(db)
    artifact = service.finalize(
        campaign_id=request.campaign_id,
        wallet_address=request.wallet_address,
        siwe=request.siwe,
        image_url=request.image_url,
    )
    data = artifact.to_dict()
    return {
        "status": "success",
        "artifact": {
            "campaignId": artifact.id,
            "caption": artifact.caption,
            "captionHash": artifact.caption_hash,
            "imageUrl": artifact.image_ref,
            "artifactHash": artifact.artifact_hash,
            "finalizedAt": data["finalizedAt"],
            "immutable": True,
        },
    }


@router.post("/verify")
async def verify_artifact(
    request: VerifyArtifactRequest,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Recompute an artifact's hash and compare it with the provided one."""
    service = ArtifactService(db)
    return service.verify(request.campaign_id, request.provided_hash)


@router.get("/get-share-payload")
async def get_share_payload(
    id: str = Query(..., min_length=1, max_length=64),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Public share payload of a finalized or shared artifact."""
    service = ArtifactService(db)
    return {"sharePayload": service.get_share_payload(id)}


@router.get("/history")
async def get_artifact_history(
    id: str = Query(..., min_length=1, max_length=64),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Audit trail of an artifact, newest first."""
    service = ArtifactService(db)
    entries = service.history(id, limit=limit)
    return {"campaignId": id, "count": len(entries), "entries": entries}
