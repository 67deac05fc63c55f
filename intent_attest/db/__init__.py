"""
Database package for Intent Attest.
"""

from .audit_models import AuditLogModel
from .base import Base, get_db, get_engine, init_database, store_guard
from .models import ArtifactModel, ProofModel

__all__ = [
    "Base",
    "get_db",
    "get_engine",
    "init_database",
    "store_guard",
    "ArtifactModel",
    "ProofModel",
    "AuditLogModel",
]
