"""
Campaign artifacts: the caption/image unit that moves through
draft -> generated -> finalized -> shared.
"""

from .enums import ArtifactState, IntentCategory
from .services import ArtifactService

__all__ = ["ArtifactState", "ArtifactService", "IntentCategory"]
