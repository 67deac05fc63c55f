"""
Canonical enums for artifacts and intent proofs.
"""

from enum import Enum, IntEnum


class ArtifactState(str, Enum):
    """Artifact lifecycle states, in the only order they may be visited."""

    DRAFT = "draft"
    GENERATED = "generated"
    FINALIZED = "finalized"
    SHARED = "shared"

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)

    @property
    def is_frozen(self) -> bool:
        return self in (ArtifactState.FINALIZED, ArtifactState.SHARED)


_STATE_ORDER = [
    ArtifactState.DRAFT,
    ArtifactState.GENERATED,
    ArtifactState.FINALIZED,
    ArtifactState.SHARED,
]

# Content may still change in these states
EDITABLE_STATES = (ArtifactState.DRAFT, ArtifactState.GENERATED)

# Proofs may be recorded against these states
PROVABLE_STATES = (ArtifactState.FINALIZED, ArtifactState.SHARED)


class IntentCategory(IntEnum):
    """Declared intent of a proof. Values are stable on-chain identifiers."""

    BUILDER = 0
    DEFI = 1
    SOCIAL = 2
    INFRASTRUCTURE = 3
