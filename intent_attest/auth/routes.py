"""
Authentication API routes.

All endpoints are prefixed with /auth-service. No session state is kept on
the server: clients hold the signed SIWE message and present it on every
call that needs it.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, constr

from ..config import Settings, get_settings
from .guard import AuthTier, OwnershipGuard, SiwePayload, get_ownership_guard
from .siwe import (
    ADDRESS_PATTERN,
    create_message,
    format_message,
    format_timestamp,
    generate_nonce,
    utc_now,
)

router = APIRouter(prefix="/auth-service", tags=["Auth"])


class SiweAuthRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: constr(min_length=1, max_length=8000)
    signature: constr(min_length=1, max_length=1000)
    address: constr(pattern=ADDRESS_PATTERN)


@router.get("/nonce")
async def issue_nonce(
    address: Optional[str] = Query(None, pattern=ADDRESS_PATTERN),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Issue a fresh SIWE challenge.

    With an address, the response also carries the canonical message text
    for that wallet to sign.
    """
    nonce = generate_nonce()
    issued_at = utc_now()
    expiration_time = issued_at + timedelta(minutes=settings.siwe_expiration_minutes)

    body: Dict[str, Any] = {
        "nonce": nonce,
        "domain": settings.siwe_domain,
        "uri": settings.siwe_uri,
        "chainId": settings.siwe_chain_id,
        "statement": settings.siwe_statement,
        "issuedAt": format_timestamp(issued_at),
        "expirationTime": format_timestamp(expiration_time),
    }

    if address:
        message = create_message(
            address,
            chain_id=settings.siwe_chain_id,
            nonce=nonce,
            expiration_minutes=settings.siwe_expiration_minutes,
            now=issued_at,
        )
        body["message"] = format_message(message)

    return body


@router.post("/siwe-auth")
async def siwe_auth(
    request: SiweAuthRequest,
    guard: OwnershipGuard = Depends(get_ownership_guard),
) -> Dict[str, Any]:
    """Check that a signed SIWE message proves control of address."""
    session = guard.authenticate(
        request.address,
        SiwePayload(message=request.message, signature=request.signature),
        AuthTier.HARD,
    )
    return {
        "success": True,
        "address": session.address,
        "expiresAt": (
            format_timestamp(session.expires_at) if session.expires_at else None
        ),
    }
