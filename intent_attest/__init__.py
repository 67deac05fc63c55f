"""
Intent Attest

Wallet-authenticated campaign artifacts with tamper-evident intent proofs.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("intent-attest")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

from .errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ContentPolicyError,
    IntentAttestError,
    NotFoundError,
    StateError,
    StoreError,
)

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "ContentPolicyError",
    "IntentAttestError",
    "NotFoundError",
    "StateError",
    "StoreError",
]
