"""
Sign-In With Ethereum (EIP-4361) challenge messages.

Builds, canonically formats, strictly parses and validates SIWE messages, and
verifies wallet signatures over the formatted text. The formatted string is
exactly what the wallet signs, so format_message() must be deterministic and
parse_message() must be its structural inverse.

Canonical layout (bracketed sections only when present):

    <domain> wants you to sign in with your Ethereum account:
    <address>

    <statement>

    URI: <uri>
    Version: <version>
    Chain ID: <chainId>
    Nonce: <nonce>
    Issued At: <issuedAt>
    [Expiration Time: <expirationTime>]
    [Resources:
    - <resource>]
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

import structlog
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import ValidationError as KeyValidationError
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    constr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from ..errors import AuthenticationError, AuthFailure

logger = structlog.get_logger()

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"
ADDRESS_RE = re.compile(ADDRESS_PATTERN)
CHAIN_ID_RE = re.compile(r"[0-9]+")

HEADER_SUFFIX = " wants you to sign in with your Ethereum account:"
EXPIRATION_PREFIX = "Expiration Time: "
RESOURCES_HEADER = "Resources:"
RESOURCE_PREFIX = "- "

# Fixed-position fields following the statement block, in signing order.
_FIELD_PREFIXES = (
    ("uri", "URI: "),
    ("version", "Version: "),
    ("chain_id", "Chain ID: "),
    ("nonce", "Nonce: "),
    ("issued_at", "Issued At: "),
)
_FIELDS_START = 5
_FIELDS_END = _FIELDS_START + len(_FIELD_PREFIXES)

NONCE_BYTES = 16
# Hex length of NONCE_BYTES; supplied nonces must carry at least as much.
NONCE_MIN_LENGTH = NONCE_BYTES * 2

SignatureVerifier = Callable[[str, str, str], bool]


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def normalize_timestamp(value: datetime) -> datetime:
    """UTC, millisecond precision: the resolution the wire format carries."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 with milliseconds and a Z suffix."""
    return (
        normalize_timestamp(value)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def generate_nonce() -> str:
    """Generate a cryptographically secure nonce (16 random bytes, hex)."""
    return secrets.token_hex(NONCE_BYTES)


def _single_line(value: str, field: str) -> str:
    if "\n" in value or "\r" in value:
        raise ValueError(f"{field} must be a single line")
    return value


class SiweMessage(BaseModel):
    """A SIWE challenge message. Never mutated after creation."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    domain: constr(min_length=1, max_length=255, pattern=r"^\S+$")
    address: constr(pattern=ADDRESS_PATTERN)
    statement: constr(max_length=1000) = ""
    uri: constr(min_length=1, max_length=2000, pattern=r"^\S+$")
    version: constr(min_length=1, max_length=16, pattern=r"^\S+$") = "1"
    chain_id: int = Field(..., ge=1)
    nonce: constr(min_length=NONCE_MIN_LENGTH, max_length=128, pattern=r"^[A-Za-z0-9]+$")
    issued_at: datetime
    expiration_time: Optional[datetime] = None
    resources: Optional[List[constr(min_length=1, max_length=2000, pattern=r"^\S+$")]] = None

    @field_validator("statement")
    @classmethod
    def statement_single_line(cls, value: str) -> str:
        return _single_line(value, "statement")

    @field_validator("issued_at", "expiration_time")
    @classmethod
    def timestamps_utc_millis(cls, value: Optional[datetime]) -> Optional[datetime]:
        return normalize_timestamp(value) if value is not None else None

    @field_validator("resources")
    @classmethod
    def empty_resources_are_absent(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        # An empty list has no wire representation.
        return value or None

    @model_validator(mode="after")
    def expiration_after_issuance(self) -> "SiweMessage":
        if self.expiration_time is not None and self.expiration_time <= self.issued_at:
            raise ValueError("expirationTime must be after issuedAt")
        return self


class SiweSession(BaseModel):
    """A verified SIWE message, its signature and the exact signed text."""

    model_config = ConfigDict(frozen=True)

    message: SiweMessage
    signature: str
    raw: str

    @property
    def address(self) -> str:
        return self.message.address.lower()

    @property
    def expires_at(self) -> Optional[datetime]:
        return self.message.expiration_time


def _default_uri(domain: str, settings) -> str:
    if domain == settings.siwe_domain:
        return settings.siwe_uri
    return f"https://{domain}"


def create_message(
    address: str,
    chain_id: int,
    nonce: Optional[str] = None,
    statement: Optional[str] = None,
    domain: Optional[str] = None,
    expiration_minutes: Optional[int] = None,
    resources: Optional[List[str]] = None,
    uri: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SiweMessage:
    """
    Build a SIWE challenge message.

    Args:
        address: Wallet address that will sign the message
        chain_id: EIP-155 chain id the session is bound to
        nonce: Fresh alphanumeric nonce of at least 32 characters; generated
            when omitted
        statement: Human-readable statement shown in the wallet
        domain: Requesting domain; defaults to the configured SIWE domain
        expiration_minutes: Optional positive lifetime in minutes
        resources: Optional ordered list of resource URIs
        uri: Requesting URI; defaults to the configured SIWE URI for the
            configured domain, otherwise https://<domain>
        now: Issuance time (defaults to the current UTC time)

    Raises:
        ValueError: If expiration_minutes is not a positive integer or a
            field fails validation
    """
    from ..config import get_settings

    settings = get_settings()

    if expiration_minutes is not None:
        if (
            isinstance(expiration_minutes, bool)
            or not isinstance(expiration_minutes, int)
            or expiration_minutes <= 0
        ):
            raise ValueError("expiration_minutes must be a positive integer")

    domain = domain or settings.siwe_domain
    issued_at = normalize_timestamp(now or utc_now())
    expiration_time = (
        issued_at + timedelta(minutes=expiration_minutes)
        if expiration_minutes is not None
        else None
    )

    return SiweMessage(
        domain=domain,
        address=address,
        statement=statement if statement is not None else settings.siwe_statement,
        uri=uri or _default_uri(domain, settings),
        version="1",
        chain_id=chain_id,
        nonce=nonce or generate_nonce(),
        issued_at=issued_at,
        expiration_time=expiration_time,
        resources=resources,
    )


def format_message(message: SiweMessage) -> str:
    """Serialize a message into its canonical, signable string."""
    lines = [
        f"{message.domain}{HEADER_SUFFIX}",
        message.address,
        "",
        message.statement,
        "",
        f"URI: {message.uri}",
        f"Version: {message.version}",
        f"Chain ID: {message.chain_id}",
        f"Nonce: {message.nonce}",
        f"Issued At: {format_timestamp(message.issued_at)}",
    ]

    if message.expiration_time is not None:
        lines.append(f"{EXPIRATION_PREFIX}{format_timestamp(message.expiration_time)}")

    if message.resources:
        lines.append(RESOURCES_HEADER)
        lines.extend(f"{RESOURCE_PREFIX}{resource}" for resource in message.resources)

    return "\n".join(lines)


def _malformed(detail: str) -> AuthenticationError:
    return AuthenticationError(AuthFailure.MALFORMED_MESSAGE, detail)


def parse_message(raw: str) -> SiweMessage:
    """
    Parse a canonical SIWE string by line position.

    Every line is matched at its fixed index against its expected prefix; no
    field is located by searching the free text, so an address-shaped token
    inside the statement can never be mistaken for the signer.

    Raises:
        AuthenticationError: reason MALFORMED_MESSAGE on any deviation
    """
    lines = raw.split("\n")
    if len(lines) < _FIELDS_END:
        raise _malformed("message too short")

    header = lines[0]
    if not header.endswith(HEADER_SUFFIX):
        raise _malformed("missing sign-in header")
    domain = header[: -len(HEADER_SUFFIX)]

    address = lines[1]
    if not ADDRESS_RE.match(address):
        raise _malformed("line 2 is not an address")

    if lines[2] != "" or lines[4] != "":
        raise _malformed("statement must be surrounded by blank lines")
    statement = lines[3]

    fields = {}
    for index, (name, prefix) in enumerate(_FIELD_PREFIXES, start=_FIELDS_START):
        line = lines[index]
        if not line.startswith(prefix):
            raise _malformed(f"expected '{prefix.strip()}' on line {index + 1}")
        fields[name] = line[len(prefix):]

    if not CHAIN_ID_RE.fullmatch(fields["chain_id"]):
        raise _malformed("chain id must be an integer")

    cursor = _FIELDS_END
    expiration_time = None
    if cursor < len(lines) and lines[cursor].startswith(EXPIRATION_PREFIX):
        expiration_time = lines[cursor][len(EXPIRATION_PREFIX):]
        cursor += 1

    resources = None
    if cursor < len(lines) and lines[cursor] == RESOURCES_HEADER:
        cursor += 1
        resources = []
        while cursor < len(lines) and lines[cursor].startswith(RESOURCE_PREFIX):
            resources.append(lines[cursor][len(RESOURCE_PREFIX):])
            cursor += 1
        if not resources:
            raise _malformed("empty resources section")

    if cursor != len(lines):
        raise _malformed(f"unexpected content on line {cursor + 1}")

    try:
        return SiweMessage(
            domain=domain,
            address=address,
            statement=statement,
            uri=fields["uri"],
            version=fields["version"],
            chain_id=int(fields["chain_id"]),
            nonce=fields["nonce"],
            issued_at=fields["issued_at"],
            expiration_time=expiration_time,
            resources=resources,
        )
    except ValidationError as e:
        raise _malformed(str(e)) from e


def validate_message(
    message: SiweMessage,
    expected_address: str,
    expected_chain_id: int,
    expected_domain: str,
    now: Optional[datetime] = None,
) -> None:
    """
    Check a message against the expected signer, chain and domain.

    Checks run in order (address, chain, domain, expiry); the first failure
    raises.

    Raises:
        AuthenticationError: with the reason of the first failed check
    """
    if message.address.lower() != expected_address.lower():
        raise AuthenticationError(AuthFailure.ADDRESS_MISMATCH)

    if message.chain_id != expected_chain_id:
        raise AuthenticationError(
            AuthFailure.CHAIN_MISMATCH,
            f"expected {expected_chain_id}, got {message.chain_id}",
        )

    if message.domain != expected_domain:
        raise AuthenticationError(
            AuthFailure.DOMAIN_MISMATCH,
            f"expected {expected_domain}, got {message.domain}",
        )

    current = now or utc_now()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    if message.expiration_time is not None and message.expiration_time <= current:
        raise AuthenticationError(AuthFailure.EXPIRED_MESSAGE)


def verify_signature(formatted_message: str, signature: str, claimed_address: str) -> bool:
    """Return True if signature is claimed_address's EIP-191 signature of the text."""
    try:
        recovered = Account.recover_message(
            encode_defunct(text=formatted_message), signature=signature
        )
    except (ValueError, TypeError, IndexError, KeyValidationError) as e:
        logger.debug("Signature recovery failed", error=str(e))
        return False
    return recovered.lower() == claimed_address.lower()


def establish_session(
    raw_message: str,
    signature: str,
    expected_address: str,
    expected_chain_id: int,
    expected_domain: str,
    now: Optional[datetime] = None,
    verifier: SignatureVerifier = verify_signature,
) -> SiweSession:
    """
    Re-verify a client-held SIWE payload and return the session it proves.

    The raw text must be byte-for-byte the canonical rendering of the message
    it parses to, so what was signed is exactly what was validated.

    Raises:
        AuthenticationError: on any parse, validation or signature failure
    """
    message = parse_message(raw_message)
    if format_message(message) != raw_message:
        raise _malformed("message is not in canonical form")

    validate_message(message, expected_address, expected_chain_id, expected_domain, now)

    if not verifier(raw_message, signature, expected_address):
        raise AuthenticationError(AuthFailure.INVALID_SIGNATURE)

    return SiweSession(message=message, signature=signature, raw=raw_message)
