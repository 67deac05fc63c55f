"""
Ownership guard.

Decides whether a caller may act on a resource, given the resource's recorded
owner, the caller's claimed wallet address and an optional client-held SIWE
payload that is re-verified on every call.

Security tiers:
- READ: no session, no ownership check
- SOFT: owner match required; a supplied session must verify
- HARD: owner match and a valid, unexpired session for that owner required
"""

from datetime import datetime
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, constr

from ..errors import AuthenticationError, AuthFailure, AuthorizationError
from .siwe import (
    SignatureVerifier,
    SiweSession,
    establish_session,
    verify_signature,
)

logger = structlog.get_logger()


class AuthTier(str, Enum):
    """How much proof of wallet control an operation demands."""

    READ = "read"
    SOFT = "soft"
    HARD = "hard"


class SiwePayload(BaseModel):
    """Client-held SIWE proof: the signed message text and its signature."""

    model_config = ConfigDict(extra="ignore")

    message: constr(min_length=1, max_length=8000)
    signature: constr(min_length=1, max_length=1000) = Field(
        ..., description="Hex-encoded EIP-191 signature of message"
    )


def addresses_equal(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive wallet address comparison."""
    if not a or not b:
        return False
    return a.lower() == b.lower()


class OwnershipGuard:
    """Authorizes calls against a resource owner under a security tier."""

    def __init__(
        self,
        chain_id: int,
        domain: str,
        verifier: SignatureVerifier = verify_signature,
    ):
        self.chain_id = chain_id
        self.domain = domain
        self.verifier = verifier

    def authenticate(
        self,
        caller_address: str,
        siwe: Optional[SiwePayload],
        tier: AuthTier,
        now: Optional[datetime] = None,
    ) -> Optional[SiweSession]:
        """
        Verify the caller's session as the tier requires.

        Returns:
            The verified session, or None when none was supplied and the
            tier allows that

        Raises:
            AuthenticationError: if the tier requires a session and none was
                given, or a supplied session fails verification
        """
        if tier == AuthTier.READ:
            return None

        if siwe is None:
            if tier == AuthTier.HARD:
                logger.warning(
                    "SIWE session required", wallet=caller_address, tier=tier.value
                )
                raise AuthenticationError(AuthFailure.SESSION_REQUIRED)
            return None

        try:
            session = establish_session(
                siwe.message,
                siwe.signature,
                expected_address=caller_address,
                expected_chain_id=self.chain_id,
                expected_domain=self.domain,
                now=now,
                verifier=self.verifier,
            )
        except AuthenticationError as e:
            logger.warning(
                "SIWE verification failed",
                wallet=caller_address,
                tier=tier.value,
                reason=e.reason.value,
                detail=e.detail,
            )
            raise

        logger.info("SIWE verified", wallet=caller_address, tier=tier.value)
        return session

    def check_owner(self, owner_address: str, caller_address: str) -> None:
        """Raise AuthorizationError unless the caller is the recorded owner."""
        if not addresses_equal(owner_address, caller_address):
            logger.warning(
                "Ownership check failed", wallet=caller_address, owner=owner_address
            )
            raise AuthorizationError()

    def authorize(
        self,
        owner_address: str,
        caller_address: str,
        siwe: Optional[SiwePayload] = None,
        tier: AuthTier = AuthTier.SOFT,
        now: Optional[datetime] = None,
    ) -> Optional[SiweSession]:
        """
        Authenticate per tier, then require the caller to own the resource.

        Authentication runs first so an unauthenticated caller learns nothing
        about who owns what.
        """
        if tier == AuthTier.READ:
            return None

        session = self.authenticate(caller_address, siwe, tier, now)
        self.check_owner(owner_address, caller_address)
        return session


def get_ownership_guard() -> OwnershipGuard:
    """Build a guard from application settings."""
    from ..config import get_settings

    settings = get_settings()
    return OwnershipGuard(chain_id=settings.siwe_chain_id, domain=settings.siwe_domain)
