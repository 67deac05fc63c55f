"""
Intent Proof Service Layer.

Records at most one proof per (campaign, wallet). The duplicate pre-check is
only a fast path: the uq_proofs_campaign_user constraint is what holds under
concurrency, and a violation on insert is reported exactly like a pre-check
hit. The proof insert and the artifact's finalized -> shared transition
commit together.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..artifacts.enums import PROVABLE_STATES, ArtifactState, IntentCategory
from ..artifacts.services import ArtifactService
from ..auth.guard import AuthTier, OwnershipGuard, SiwePayload, get_ownership_guard
from ..db.audit_service import AuditService, generate_ulid
from ..db.base import store_guard
from ..db.models import ProofModel
from ..errors import ConflictError, StateError
from ..hashing import campaign_hash, digests_match, intent_fingerprint

logger = structlog.get_logger()

ENTITY_KIND = "Proof"
DUPLICATE_MESSAGE = "Proof already recorded for this campaign"


class ProofService:
    """Service for recording and verifying intent proofs."""

    def __init__(
        self,
        db: Session,
        guard: Optional[OwnershipGuard] = None,
        artifacts: Optional[ArtifactService] = None,
        audit: Optional[AuditService] = None,
    ):
        self.db = db
        self.guard = guard or get_ownership_guard()
        self.audit = audit or AuditService(db)
        self.artifacts = artifacts or ArtifactService(
            db, guard=self.guard, audit=self.audit
        )

    def find(self, campaign_id: str, user_address: str) -> Optional[ProofModel]:
        """Get the proof for a (campaign, wallet) pair, if any."""
        with store_guard(self.db, "proof.find"):
            return (
                self.db.query(ProofModel)
                .filter(
                    ProofModel.campaign_id == campaign_id,
                    ProofModel.user_address == user_address.lower(),
                )
                .first()
            )

    def _duplicate(self, existing: ProofModel, source: str) -> ConflictError:
        logger.info(
            "Duplicate proof",
            campaign_id=existing.campaign_id,
            wallet=existing.user_address,
            proof_id=existing.id,
            source=source,
        )
        return ConflictError(DUPLICATE_MESSAGE, existing.id)

    def record(
        self,
        campaign_id: str,
        user_address: str,
        intent_category: IntentCategory,
        target_dapps: Iterable[str],
        action_order: Iterable[str],
        siwe: Optional[SiwePayload],
        tx_hash: Optional[str] = None,
    ) -> ProofModel:
        """
        Record a proof and mark the artifact shared.

        Raises:
            AuthenticationError: missing or invalid SIWE session
            NotFoundError: unknown campaign
            AuthorizationError: caller does not own the campaign
            StateError: campaign is not finalized or shared
            ConflictError: a proof already exists for this wallet and campaign;
                carries the existing proof id
        """
        wallet = user_address.lower()
        self.guard.authenticate(user_address, siwe, AuthTier.HARD)

        artifact = self.artifacts.require(campaign_id)
        self.guard.check_owner(artifact.owner_address, user_address)

        state = ArtifactState(artifact.state)
        if state not in PROVABLE_STATES:
            raise StateError(
                "Campaign must be finalized before recording proof",
                current=state.value,
                required=ArtifactState.FINALIZED.value,
            )

        existing = self.find(campaign_id, wallet)
        if existing is not None:
            raise self._duplicate(existing, "precheck")

        dapps = list(target_dapps)
        actions = list(action_order)
        proof = ProofModel(
            id=generate_ulid(),
            campaign_id=campaign_id,
            user_address=wallet,
            campaign_hash=campaign_hash(campaign_id, wallet, artifact.caption_hash),
            intent_fingerprint=intent_fingerprint(int(intent_category), dapps, actions),
            intent_category=int(intent_category),
            target_dapps=dapps,
            action_order=actions,
            tx_hash=tx_hash,
            recorded_at=datetime.now(timezone.utc),
        )

        with store_guard(self.db, "proof.record"):
            self.db.add(proof)
            try:
                self.db.flush()
                shared = self.artifacts.mark_shared(artifact)
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                existing = self.find(campaign_id, wallet)
                if existing is None:
                    raise
                raise self._duplicate(existing, "constraint")
            except StateError:
                self.db.rollback()
                raise
            self.db.refresh(proof)
            summary = proof.to_dict()

        with self.audit.after_commit("proof.record", proof.id):
            self.audit.log_create(
                entity_kind=ENTITY_KIND,
                entity_id=summary["proofId"],
                after=summary,
                wallet=wallet,
            )
            if shared:
                self.audit.log_status_change(
                    entity_kind="Artifact",
                    entity_id=campaign_id,
                    old_status=ArtifactState.FINALIZED.value,
                    new_status=ArtifactState.SHARED.value,
                    wallet=wallet,
                    note=f"Proof {summary['proofId']} recorded",
                )

        logger.info(
            "Proof recorded",
            campaign_id=campaign_id,
            wallet=wallet,
            proof_id=proof.id,
            intent_fingerprint=proof.intent_fingerprint,
        )
        return proof

    def list(
        self,
        campaign_id: Optional[str] = None,
        user_address: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """List proofs with their campaign summary, newest first."""
        with store_guard(self.db, "proof.list"):
            query = self.db.query(ProofModel).options(joinedload(ProofModel.artifact))

            if campaign_id:
                query = query.filter(ProofModel.campaign_id == campaign_id)
            if user_address:
                query = query.filter(ProofModel.user_address == user_address.lower())

            proofs = (
                query.order_by(desc(ProofModel.recorded_at), desc(ProofModel.id))
                .limit(limit)
                .all()
            )

            result = []
            for proof in proofs:
                data = proof.to_dict()
                data["campaign"] = proof.artifact.to_summary()
                result.append(data)
            return result

    def verify(
        self, campaign_id: str, user_address: str, provided_hash: str
    ) -> Dict[str, Any]:
        """
        Recompute the campaign hash from current artifact state and compare.

        Whether the hash matches and whether a proof is stored are reported
        separately.
        """
        artifact = self.artifacts.require(campaign_id)
        expected = campaign_hash(campaign_id, user_address, artifact.caption_hash)
        proof = self.find(campaign_id, user_address)

        proof_details = None
        if proof is not None:
            data = proof.to_dict()
            proof_details = {
                "proofId": proof.id,
                "recordedAt": data["timestamp"],
                "txHash": proof.tx_hash,
            }

        return {
            "valid": digests_match(expected, provided_hash),
            "proofExists": proof is not None,
            "expectedHash": expected,
            "providedHash": provided_hash,
            "campaignStatus": artifact.state,
            "proofDetails": proof_details,
        }

    def stats(self, user_address: Optional[str] = None) -> Dict[str, Any]:
        """Aggregate proof counts."""
        with store_guard(self.db, "proof.stats"):
            total = self.db.query(func.count(ProofModel.id)).scalar() or 0
            unique_users = (
                self.db.query(func.count(func.distinct(ProofModel.user_address))).scalar()
                or 0
            )
            stats: Dict[str, Any] = {"totalProofs": total, "uniqueUsers": unique_users}

            if user_address:
                stats["userProofs"] = (
                    self.db.query(func.count(ProofModel.id))
                    .filter(ProofModel.user_address == user_address.lower())
                    .scalar()
                    or 0
                )
            return stats
