"""
Wallet authentication: SIWE messages and the ownership guard.
"""

from .guard import AuthTier, OwnershipGuard, SiwePayload, get_ownership_guard
from .siwe import (
    SiweMessage,
    SiweSession,
    create_message,
    establish_session,
    format_message,
    generate_nonce,
    parse_message,
    validate_message,
    verify_signature,
)

__all__ = [
    "AuthTier",
    "OwnershipGuard",
    "SiwePayload",
    "get_ownership_guard",
    "SiweMessage",
    "SiweSession",
    "create_message",
    "establish_session",
    "format_message",
    "generate_nonce",
    "parse_message",
    "validate_message",
    "verify_signature",
]
