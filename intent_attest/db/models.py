"""
SQLAlchemy models for Intent Attest.
"""

from datetime import timezone
from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .base import Base

artifact_state_enum = Enum(
    "draft",
    "generated",
    "finalized",
    "shared",
    name="artifact_state",
)


def _iso(value) -> Any:
    return value.isoformat() if value else None


def _epoch_ms(value) -> Any:
    if value is None:
        return None
    # SQLite hands back naive datetimes; stored values are always UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class ArtifactModel(Base):
    """A campaign artifact: caption plus optional image, frozen at finalization."""

    __tablename__ = "artifacts"

    # Opaque, owner-assigned identifier
    id = Column(String(64), primary_key=True)
    owner_address = Column(String(42), nullable=False, index=True)

    state = Column(artifact_state_enum, nullable=False, default="draft", index=True)

    campaign_type = Column(String(100), nullable=False, default="general")
    image_style = Column(String(100), nullable=False, default="default")

    # Mutable only in draft/generated
    caption = Column(Text, nullable=False, default="")
    caption_hash = Column(String(64), nullable=False, default="")
    image_ref = Column(String(2000), nullable=True)

    # Written exactly once, at the generated -> finalized transition
    artifact_hash = Column(String(64), nullable=True)
    finalized_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now()
    )

    proofs = relationship("ProofModel", back_populates="artifact")

    __table_args__ = (
        Index("ix_artifacts_owner_state", "owner_address", "state"),
    )

    @property
    def is_frozen(self) -> bool:
        return self.state in ("finalized", "shared")

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "walletAddress": self.owner_address,
            "status": self.state,
            "campaignType": self.campaign_type,
            "imageStyle": self.image_style,
            "caption": self.caption,
            "captionHash": self.caption_hash,
            "imageUrl": self.image_ref,
            "artifactHash": self.artifact_hash,
            "finalizedAt": _iso(self.finalized_at),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def to_summary(self) -> Dict[str, Any]:
        """Campaign fields embedded in proof listings."""
        return {
            "id": self.id,
            "caption": self.caption,
            "imageUrl": self.image_ref,
            "captionHash": self.caption_hash,
            "status": self.state,
            "createdAt": _iso(self.created_at),
        }


class ProofModel(Base):
    """Append-only attestation tying a wallet to a finalized artifact."""

    __tablename__ = "proofs"

    id = Column(String(36), primary_key=True)
    campaign_id = Column(
        String(64), ForeignKey("artifacts.id"), nullable=False, index=True
    )
    # Stored lowercase; addresses are case-insensitive identifiers
    user_address = Column(String(42), nullable=False, index=True)

    campaign_hash = Column(String(66), nullable=False)
    intent_fingerprint = Column(String(66), nullable=False)
    intent_category = Column(Integer, nullable=False)
    target_dapps = Column(JSON, nullable=False, default=list)
    action_order = Column(JSON, nullable=False, default=list)

    tx_hash = Column(String(128), nullable=True)
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    artifact = relationship("ArtifactModel", back_populates="proofs")

    __table_args__ = (
        UniqueConstraint("campaign_id", "user_address", name="uq_proofs_campaign_user"),
        Index("ix_proofs_recorded_at", "recorded_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "proofId": self.id,
            "campaignId": self.campaign_id,
            "userAddress": self.user_address,
            "campaignHash": self.campaign_hash,
            "intentFingerprint": self.intent_fingerprint,
            "intentCategory": self.intent_category,
            "targetDApps": self.target_dapps,
            "actionOrder": self.action_order,
            "timestamp": _epoch_ms(self.recorded_at),
            "txHash": self.tx_hash,
        }
