"""
Artifact Service Layer.

Drives the artifact state machine: draft -> generated -> finalized -> shared.

Every transition is a conditional UPDATE on (id, expected state), so two
requests racing on the same artifact are serialized by the store: the loser
sees a zero row count and fails with a StateError naming the state that won.

Audit logging is integrated into all state-changing operations.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.guard import AuthTier, OwnershipGuard, SiwePayload, get_ownership_guard
from ..config import get_settings
from ..db.audit_service import AuditService, generate_ulid
from ..db.base import store_guard
from ..db.models import ArtifactModel
from ..errors import ConflictError, ContentPolicyError, NotFoundError, StateError
from ..hashing import artifact_hash, caption_hash, digests_match
from ..policy.content_gate import ContentPolicy, get_content_policy
from .enums import EDITABLE_STATES, ArtifactState

logger = structlog.get_logger()

ENTITY_KIND = "Artifact"


def _editable_required() -> str:
    return " or ".join(s.value for s in EDITABLE_STATES)


class ArtifactService:
    """Service for managing campaign artifacts."""

    def __init__(
        self,
        db: Session,
        guard: Optional[OwnershipGuard] = None,
        policy: Optional[ContentPolicy] = None,
        audit: Optional[AuditService] = None,
        public_base_url: Optional[str] = None,
    ):
        self.db = db
        self.guard = guard or get_ownership_guard()
        self.policy = policy or get_content_policy()
        self.audit = audit or AuditService(db)
        self.public_base_url = (
            public_base_url or get_settings().public_base_url
        ).rstrip("/")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, artifact_id: str) -> Optional[ArtifactModel]:
        """Get an artifact by ID."""
        with store_guard(self.db, "artifact.get"):
            return (
                self.db.query(ArtifactModel)
                .filter(ArtifactModel.id == artifact_id)
                .first()
            )

    def require(self, artifact_id: str) -> ArtifactModel:
        """Get an artifact by ID or raise NotFoundError."""
        artifact = self.get(artifact_id)
        if artifact is None:
            raise NotFoundError()
        return artifact

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _compare_and_set(
        self,
        artifact_id: str,
        expected: ArtifactState,
        values: Dict[str, Any],
        required: str,
        message: str,
    ) -> None:
        """
        Apply values only if the artifact is still in the expected state.

        Does not commit. On a lost race the session is rolled back, which
        also discards anything else pending in the caller's transaction.

        Raises:
            StateError: if another request moved the artifact first
        """
        result = self.db.execute(
            update(ArtifactModel)
            .where(
                ArtifactModel.id == artifact_id,
                ArtifactModel.state == expected.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return

        self.db.rollback()
        current = (
            self.db.query(ArtifactModel.state)
            .filter(ArtifactModel.id == artifact_id)
            .scalar()
        )
        if current is None:
            raise NotFoundError()
        logger.warning(
            "Artifact transition lost race",
            campaign_id=artifact_id,
            expected=expected.value,
            current=current,
        )
        raise StateError(message.format(state=current), current=current, required=required)

    def create(
        self,
        wallet_address: str,
        campaign_id: Optional[str] = None,
        campaign_type: str = "general",
        image_style: str = "default",
    ) -> ArtifactModel:
        """Create a new artifact in draft state."""
        artifact_id = campaign_id or generate_ulid()
        owner = wallet_address.lower()

        with store_guard(self.db, "artifact.create"):
            if self.get(artifact_id) is not None:
                raise ConflictError(
                    "Campaign already exists", artifact_id, id_field="campaignId"
                )

            now = datetime.now(timezone.utc)
            artifact = ArtifactModel(
                id=artifact_id,
                owner_address=owner,
                state=ArtifactState.DRAFT.value,
                campaign_type=campaign_type,
                image_style=image_style,
                caption="",
                caption_hash="",
                created_at=now,
                updated_at=now,
            )
            self.db.add(artifact)
            try:
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise ConflictError(
                    "Campaign already exists", artifact_id, id_field="campaignId"
                )
            self.db.refresh(artifact)

        with self.audit.after_commit("artifact.create", artifact_id):
            self.audit.log_create(
                entity_kind=ENTITY_KIND,
                entity_id=artifact.id,
                after=artifact.to_dict(),
                wallet=owner,
            )

        logger.info("Artifact created", campaign_id=artifact.id, wallet=owner)
        return artifact

    def generate(
        self,
        campaign_id: str,
        raw_caption: str,
        target_dapps: Iterable[str],
        wallet_address: str,
        siwe: Optional[SiwePayload] = None,
    ) -> ArtifactModel:
        """
        Validate a raw caption and store the policy-compliant result.

        Allowed from draft or generated (regeneration). On a policy violation
        the artifact stays in its current state.

        Raises:
            NotFoundError: unknown campaign
            AuthenticationError: a supplied SIWE session failed verification
            AuthorizationError: caller is not the owner
            StateError: content is already frozen
            ContentPolicyError: the caption violates the content policy
        """
        artifact = self.require(campaign_id)
        self.guard.authorize(artifact.owner_address, wallet_address, siwe, AuthTier.SOFT)

        state = ArtifactState(artifact.state)
        if state not in EDITABLE_STATES:
            raise StateError(
                f"Cannot generate content for campaign in {state.value} state. "
                f"Content is frozen.",
                current=state.value,
                required=_editable_required(),
            )

        result = self.policy.validate(raw_caption)
        if not result.valid:
            logger.info(
                "Caption rejected by content policy",
                campaign_id=campaign_id,
                violations=result.violations,
            )
            raise ContentPolicyError(result.violations)

        caption = self.policy.inject_mandatory_content(raw_caption, target_dapps)
        too_long = self.policy.length_violation(caption)
        if too_long:
            logger.info(
                "Caption too long after mandatory content",
                campaign_id=campaign_id,
                length=len(caption),
            )
            raise ContentPolicyError([too_long])

        before = {"caption": artifact.caption, "captionHash": artifact.caption_hash}
        digest = caption_hash(caption)

        with store_guard(self.db, "artifact.generate"):
            self._compare_and_set(
                campaign_id,
                expected=state,
                values={
                    "caption": caption,
                    "caption_hash": digest,
                    "state": ArtifactState.GENERATED.value,
                    "updated_at": datetime.now(timezone.utc),
                },
                required=_editable_required(),
                message="Cannot generate content for campaign in {state} state. "
                "Content is frozen.",
            )
            self.db.commit()
            self.db.refresh(artifact)

        with self.audit.after_commit("artifact.generate", campaign_id):
            self.audit.log_update(
                entity_kind=ENTITY_KIND,
                entity_id=campaign_id,
                before=before,
                after={"caption": caption, "captionHash": digest},
                wallet=wallet_address,
            )
            if state != ArtifactState.GENERATED:
                self.audit.log_status_change(
                    entity_kind=ENTITY_KIND,
                    entity_id=campaign_id,
                    old_status=state.value,
                    new_status=ArtifactState.GENERATED.value,
                    wallet=wallet_address,
                )

        logger.info(
            "Artifact generated",
            campaign_id=campaign_id,
            wallet=wallet_address.lower(),
            caption_hash=digest,
        )
        return artifact

    def attach_image(
        self,
        campaign_id: str,
        image_url: str,
        wallet_address: str,
        siwe: Optional[SiwePayload] = None,
    ) -> ArtifactModel:
        """Set the image reference of an artifact that is not yet frozen."""
        artifact = self.require(campaign_id)
        self.guard.authorize(artifact.owner_address, wallet_address, siwe, AuthTier.SOFT)

        state = ArtifactState(artifact.state)
        message = "Cannot attach image to campaign in {state} state. Content is frozen."
        if state not in EDITABLE_STATES:
            raise StateError(
                message.format(state=state.value),
                current=state.value,
                required=_editable_required(),
            )

        before = {"imageUrl": artifact.image_ref}

        with store_guard(self.db, "artifact.attach_image"):
            self._compare_and_set(
                campaign_id,
                expected=state,
                values={
                    "image_ref": image_url,
                    "updated_at": datetime.now(timezone.utc),
                },
                required=_editable_required(),
                message=message,
            )
            self.db.commit()
            self.db.refresh(artifact)

        with self.audit.after_commit("artifact.attach_image", campaign_id):
            self.audit.log_update(
                entity_kind=ENTITY_KIND,
                entity_id=campaign_id,
                before=before,
                after={"imageUrl": image_url},
                wallet=wallet_address,
            )

        logger.info("Artifact image attached", campaign_id=campaign_id)
        return artifact

    def finalize(
        self,
        campaign_id: str,
        wallet_address: str,
        siwe: Optional[SiwePayload],
        image_url: Optional[str] = None,
    ) -> ArtifactModel:
        """
        Freeze caption and image and compute the artifact hash exactly once.

        Not idempotent: finalizing an already finalized artifact is a
        StateError even with identical inputs.

        Raises:
            NotFoundError: unknown campaign
            AuthenticationError: missing or invalid SIWE session
            AuthorizationError: caller is not the owner
            StateError: artifact is not in generated state
        """
        artifact = self.require(campaign_id)
        self.guard.authorize(artifact.owner_address, wallet_address, siwe, AuthTier.HARD)

        message = (
            "Cannot finalize campaign in {state} state. Must be in 'generated' state."
        )
        state = ArtifactState(artifact.state)
        if state != ArtifactState.GENERATED:
            logger.info(
                "Finalize rejected", campaign_id=campaign_id, state=state.value
            )
            raise StateError(
                message.format(state=state.value),
                current=state.value,
                required=ArtifactState.GENERATED.value,
            )

        image_ref = image_url if image_url is not None else artifact.image_ref
        digest = artifact_hash(artifact.caption, image_ref)
        now = datetime.now(timezone.utc)

        with store_guard(self.db, "artifact.finalize"):
            self._compare_and_set(
                campaign_id,
                expected=ArtifactState.GENERATED,
                values={
                    "image_ref": image_ref,
                    "artifact_hash": digest,
                    "finalized_at": now,
                    "state": ArtifactState.FINALIZED.value,
                    "updated_at": now,
                },
                required=ArtifactState.GENERATED.value,
                message=message,
            )
            self.db.commit()
            self.db.refresh(artifact)

        with self.audit.after_commit("artifact.finalize", campaign_id):
            self.audit.log_status_change(
                entity_kind=ENTITY_KIND,
                entity_id=campaign_id,
                old_status=ArtifactState.GENERATED.value,
                new_status=ArtifactState.FINALIZED.value,
                wallet=wallet_address,
                note=f"artifactHash={digest}",
            )

        logger.info(
            "Artifact finalized",
            campaign_id=campaign_id,
            wallet=wallet_address.lower(),
            artifact_hash=digest,
        )
        return artifact

    def mark_shared(self, artifact: ArtifactModel) -> bool:
        """
        Move a finalized artifact to shared within the caller's transaction.

        Does not commit or roll back. Returns False when the artifact was
        already shared, including by a concurrent request.

        Raises:
            StateError: the artifact is neither finalized nor shared
        """
        result = self.db.execute(
            update(ArtifactModel)
            .where(
                ArtifactModel.id == artifact.id,
                ArtifactModel.state == ArtifactState.FINALIZED.value,
            )
            .values(
                state=ArtifactState.SHARED.value,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return True

        current = (
            self.db.query(ArtifactModel.state)
            .filter(ArtifactModel.id == artifact.id)
            .scalar()
        )
        if current == ArtifactState.SHARED.value:
            return False
        raise StateError(
            f"Cannot share campaign in {current} state. Must be in 'finalized' state.",
            current=current,
            required=ArtifactState.FINALIZED.value,
        )

    # ------------------------------------------------------------------
    # Read-only operations on frozen content
    # ------------------------------------------------------------------

    def verify(self, campaign_id: str, provided_hash: str) -> Dict[str, Any]:
        """
        Recompute the artifact hash from the frozen fields and compare.

        Never changes the artifact. Only finalized or shared artifacts can
        verify as valid; the stored hash must also still match the content.
        """
        artifact = self.require(campaign_id)
        calculated = artifact_hash(artifact.caption, artifact.image_ref)

        valid = (
            artifact.is_frozen
            and artifact.artifact_hash == calculated
            and digests_match(calculated, provided_hash)
        )
        if artifact.is_frozen and artifact.artifact_hash != calculated:
            logger.error(
                "Frozen artifact content does not match stored hash",
                campaign_id=campaign_id,
            )

        return {
            "valid": valid,
            "calculatedHash": calculated,
            "providedHash": provided_hash,
            "status": artifact.state,
        }

    def get_share_payload(self, campaign_id: str) -> Dict[str, Any]:
        """Build the public share payload of a frozen artifact."""
        artifact = self.require(campaign_id)
        if not artifact.is_frozen:
            raise StateError(
                "Campaign must be finalized before sharing",
                current=artifact.state,
                required=ArtifactState.FINALIZED.value,
            )

        return {
            "campaignId": artifact.id,
            "caption": artifact.caption,
            "imageUrl": artifact.image_ref,
            "captionHash": artifact.caption_hash,
            "artifactHash": artifact.artifact_hash,
            "publicUrl": f"{self.public_base_url}/campaign/{artifact.id}",
            "createdAt": artifact.to_dict()["createdAt"],
            "frozen": True,
        }

    def history(self, campaign_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Audit entries for an artifact, newest first."""
        self.require(campaign_id)
        with store_guard(self.db, "artifact.history"):
            entries = self.audit.query_by_entity(ENTITY_KIND, campaign_id, limit=limit)
            return [e.to_dict() for e in entries]
