"""
Domain error taxonomy for Intent Attest.

Every error carries a stable code for programmatic handling, the HTTP status
it maps to, and a to_dict() rendering that is safe to return to clients.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class IntentAttestError(Exception):
    """Base class for all domain errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {"error": self.message, "code": self.code}


class AuthFailure(str, Enum):
    """Internal reasons for an authentication failure. Never sent to clients."""

    MALFORMED_MESSAGE = "malformed_message"
    ADDRESS_MISMATCH = "address_mismatch"
    CHAIN_MISMATCH = "chain_mismatch"
    DOMAIN_MISMATCH = "domain_mismatch"
    EXPIRED_MESSAGE = "expired_message"
    INVALID_SIGNATURE = "invalid_signature"
    SESSION_REQUIRED = "session_required"


class AuthenticationError(IntentAttestError):
    """A SIWE session was missing, malformed, expired or not validly signed.

    The reason is available to server-side logging only; to_dict() reports
    the category so callers get no oracle for guessing addresses or nonces.
    """

    code = "AUTHENTICATION_FAILED"
    status_code = 401

    def __init__(self, reason: AuthFailure, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        super().__init__("Authentication failed")

    def __str__(self) -> str:
        suffix = f": {self.detail}" if self.detail else ""
        return f"{self.reason.value}{suffix}"


class AuthorizationError(IntentAttestError):
    """The authenticated caller does not own the resource."""

    code = "NOT_OWNER"
    status_code = 403

    def __init__(self, message: str = "Unauthorized: You do not own this campaign"):
        super().__init__(message)


class ContentPolicyError(IntentAttestError):
    """Content failed policy validation. Recoverable: amend and resubmit."""

    code = "CONTENT_VIOLATION"
    status_code = 400

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("Content validation failed")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "violations": self.violations,
        }


class StateError(IntentAttestError):
    """The requested transition is not allowed from the resource's current state."""

    code = "INVALID_TRANSITION"
    status_code = 400

    def __init__(self, message: str, current: str, required: Optional[str] = None):
        self.current = current
        self.required = required
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "currentState": self.current,
            "requiredState": self.required,
        }


class ConflictError(IntentAttestError):
    """A record already exists. Callers treat this as an idempotent outcome."""

    code = "DUPLICATE"
    status_code = 409

    def __init__(self, message: str, existing_id: str, id_field: str = "proofId"):
        self.existing_id = existing_id
        self.id_field = id_field
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            self.id_field: self.existing_id,
        }


class NotFoundError(IntentAttestError):
    """The referenced campaign does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Campaign not found"):
        super().__init__(message)


class StoreError(IntentAttestError):
    """The durable store failed or timed out. Always retryable."""

    code = "STORE_UNAVAILABLE"
    status_code = 503
    retry_after_seconds = 1

    def __init__(self, message: str = "Store unavailable, retry later"):
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "retryable": True}
