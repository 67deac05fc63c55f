"""
Intent proofs: at most one attestation per (campaign, wallet).
"""

from .services import ProofService

__all__ = ["ProofService"]
