"""Test configuration and fixtures."""

import os

# Set environment variables before importing application code
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LOG_FORMAT"] = "console"

from typing import Callable, Dict, Generator

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from intent_attest.api import app
from intent_attest.auth.guard import OwnershipGuard, SiwePayload
from intent_attest.auth.siwe import create_message, format_message
from intent_attest.config import get_settings
from intent_attest.db import audit_models, models  # noqa: F401
from intent_attest.db.base import Base, get_db

# Deterministic test wallets
OWNER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Generator[Session, None, None]:
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestSessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(db_engine) -> Generator[TestClient, None, None]:
    """TestClient whose get_db dependency uses the test database."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        db = TestSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def owner() -> LocalAccount:
    return Account.from_key(OWNER_KEY)


@pytest.fixture
def other() -> LocalAccount:
    return Account.from_key(OTHER_KEY)


@pytest.fixture
def guard() -> OwnershipGuard:
    settings = get_settings()
    return OwnershipGuard(chain_id=settings.siwe_chain_id, domain=settings.siwe_domain)


def _sign(account: LocalAccount, text: str) -> str:
    """EIP-191 sign text, returning a 0x-prefixed hex signature."""
    signed = account.sign_message(encode_defunct(text=text))
    return "0x" + bytes(signed.signature).hex()


@pytest.fixture
def siwe_for() -> Callable[..., Dict[str, str]]:
    """Build a signed {message, signature} payload for an account.

    Keyword arguments override create_message() defaults, e.g. chain_id,
    domain or now.
    """

    def _build(account: LocalAccount, **overrides) -> Dict[str, str]:
        settings = get_settings()
        kwargs = {
            "chain_id": settings.siwe_chain_id,
            "expiration_minutes": 60,
        }
        kwargs.update(overrides)
        raw = format_message(create_message(account.address, **kwargs))
        return {"message": raw, "signature": _sign(account, raw)}

    return _build


@pytest.fixture
def siwe_payload(siwe_for) -> Callable[..., SiwePayload]:
    """Like siwe_for, but returns a SiwePayload model for service-level calls."""

    def _build(account: LocalAccount, **overrides) -> SiwePayload:
        return SiwePayload(**siwe_for(account, **overrides))

    return _build


@pytest.fixture
def sign_text() -> Callable[[LocalAccount, str], str]:
    """EIP-191 signer: sign_text(account, text) -> 0x-prefixed signature."""
    return _sign
