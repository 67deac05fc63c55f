"""
Audit Log Service.

Records artifact and proof events. Entries are written after the domain
change has committed, so a failed transition never leaves an audit row, and
a failed audit write never undoes or masks a committed transition.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import structlog
from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from ulid import ULID

from .audit_models import AuditLogModel

logger = structlog.get_logger()


def generate_ulid() -> str:
    """Generate a ULID for audit log entries."""
    return str(ULID())


def actor_for(wallet: Optional[str]) -> Dict[str, str]:
    """Map an optional wallet address to audit actor fields."""
    if wallet:
        return {"actor_kind": "wallet", "actor_id": wallet.lower()}
    return {"actor_kind": "system", "actor_id": "intent-attest"}


class AuditService:
    """Service for managing audit log entries.

    Usage:
        audit = AuditService(db_session)
        audit.log_create("Artifact", artifact.id, artifact.to_dict(), wallet="0xabc...")
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def after_commit(self, operation: str, entity_id: str) -> Iterator[None]:
        """Write audit entries for a change that has already committed.

        A store failure here is logged and rolled back, not raised: the
        caller's change stands and must not be reported as retryable.
        """
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Audit write failed",
                operation=operation,
                entity_id=entity_id,
                error=str(e),
            )

    def _record(
        self,
        action: str,
        entity_kind: str,
        entity_id: str,
        before: Optional[Dict[str, Any]],
        after: Optional[Dict[str, Any]],
        wallet: Optional[str],
        note: Optional[str],
    ) -> AuditLogModel:
        entry = AuditLogModel(
            id=generate_ulid(),
            ts=datetime.now(timezone.utc),
            action=action,
            entity_kind=entity_kind,
            entity_id=entity_id,
            before=before,
            after=after,
            note=note,
            **actor_for(wallet),
        )

        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def log_create(
        self,
        entity_kind: str,
        entity_id: str,
        after: Dict[str, Any],
        wallet: Optional[str] = None,
        note: Optional[str] = None,
    ) -> AuditLogModel:
        """Log the creation of an entity.

        Args:
            entity_kind: Type of entity ("Artifact", "Proof")
            entity_id: ID of the entity
            after: State of the entity after creation
            wallet: Acting wallet address, or None for the system
            note: Optional human-readable note

        Returns:
            The created AuditLogModel
        """
        return self._record("created", entity_kind, entity_id, None, after, wallet, note)

    def log_update(
        self,
        entity_kind: str,
        entity_id: str,
        before: Dict[str, Any],
        after: Dict[str, Any],
        wallet: Optional[str] = None,
        note: Optional[str] = None,
    ) -> AuditLogModel:
        """Log an update to an entity's mutable fields."""
        return self._record("updated", entity_kind, entity_id, before, after, wallet, note)

    def log_status_change(
        self,
        entity_kind: str,
        entity_id: str,
        old_status: str,
        new_status: str,
        wallet: Optional[str] = None,
        note: Optional[str] = None,
    ) -> AuditLogModel:
        """Log a lifecycle state change on an entity."""
        return self._record(
            "status_changed",
            entity_kind,
            entity_id,
            {"status": old_status},
            {"status": new_status},
            wallet,
            note or f"Status changed: {old_status} -> {new_status}",
        )

    def query_by_entity(
        self,
        entity_kind: str,
        entity_id: str,
        limit: int = 100,
    ) -> List[AuditLogModel]:
        """Get audit entries for a specific entity, newest first."""
        return (
            self.db.query(AuditLogModel)
            .filter(
                AuditLogModel.entity_kind == entity_kind,
                AuditLogModel.entity_id == entity_id,
            )
            .order_by(desc(AuditLogModel.ts), desc(AuditLogModel.id))
            .limit(limit)
            .all()
        )
