"""
Tests for the intent proof recorder.

Verifies:
- record requires hard auth, ownership and a frozen artifact
- at most one proof per (campaign, wallet), via pre-check and via the
  uniqueness constraint
- proof insert and the finalized -> shared transition commit together
- verify, list and stats
"""

import pytest
from sqlalchemy.exc import OperationalError

from intent_attest.artifacts.enums import IntentCategory
from intent_attest.artifacts.services import ArtifactService
from intent_attest.db.audit_service import AuditService
from intent_attest.db.models import ProofModel
from intent_attest.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
)
from intent_attest.hashing import campaign_hash, intent_fingerprint
from intent_attest.proofs.services import ProofService


@pytest.fixture
def artifacts(db_session, guard) -> ArtifactService:
    return ArtifactService(db_session, guard=guard)


@pytest.fixture
def service(db_session, guard, artifacts) -> ProofService:
    return ProofService(db_session, guard=guard, artifacts=artifacts)


def make_finalized(artifacts, account, siwe_payload, campaign_id="campaign-1"):
    artifacts.create(account.address, campaign_id=campaign_id)
    artifacts.generate(campaign_id, "Bridging to Arc", ["arcflow"], account.address)
    return artifacts.finalize(
        campaign_id, account.address, siwe_payload(account), image_url="https://img.example/a.png"
    )


@pytest.fixture
def finalized(artifacts, owner, siwe_payload):
    return make_finalized(artifacts, owner, siwe_payload)


def record(service, account, siwe_payload, campaign_id="campaign-1", **overrides):
    kwargs = {
        "campaign_id": campaign_id,
        "user_address": account.address,
        "intent_category": IntentCategory.DEFI,
        "target_dapps": ["arc_swap", "arcflow"],
        "action_order": ["bridge", "swap"],
        "siwe": siwe_payload(account),
    }
    kwargs.update(overrides)
    return service.record(**kwargs)


class TestRecord:
    def test_record_creates_proof_and_shares(self, service, artifacts, finalized, owner, siwe_payload):
        proof = record(service, owner, siwe_payload, tx_hash="0xabc")

        assert proof.user_address == owner.address.lower()
        assert proof.campaign_hash == campaign_hash(
            "campaign-1", owner.address, finalized.caption_hash
        )
        assert proof.intent_fingerprint == intent_fingerprint(
            1, ["arcflow", "arc_swap"], ["bridge", "swap"]
        )
        assert proof.intent_category == 1
        assert proof.tx_hash == "0xabc"
        assert artifacts.require("campaign-1").state == "shared"

    def test_duplicate_returns_existing_proof_id(self, service, finalized, owner, siwe_payload):
        first = record(service, owner, siwe_payload)
        with pytest.raises(ConflictError) as exc_info:
            record(service, owner, siwe_payload)

        assert exc_info.value.existing_id == first.id
        assert exc_info.value.to_dict() == {
            "error": "Proof already recorded for this campaign",
            "code": "DUPLICATE",
            "proofId": first.id,
        }

    def test_duplicate_with_mixed_case_address(self, service, finalized, owner, siwe_payload):
        first = record(service, owner, siwe_payload)
        with pytest.raises(ConflictError) as exc_info:
            record(service, owner, siwe_payload, user_address=owner.address.lower())
        assert exc_info.value.existing_id == first.id

    def test_constraint_violation_maps_to_conflict(
        self, service, finalized, owner, siwe_payload, db_session, monkeypatch
    ):
        """A racing insert that slips past the pre-check still yields one row."""
        first = record(service, owner, siwe_payload)

        original_find = ProofService.find
        calls = {"n": 0}

        def racing_find(self, campaign_id, user_address):
            calls["n"] += 1
            if calls["n"] == 1:
                # Pre-check runs before the concurrent request commits
                return None
            return original_find(self, campaign_id, user_address)

        monkeypatch.setattr(ProofService, "find", racing_find)

        with pytest.raises(ConflictError) as exc_info:
            record(service, owner, siwe_payload)

        assert exc_info.value.existing_id == first.id
        assert db_session.query(ProofModel).count() == 1

    def test_audit_failure_does_not_mask_committed_proof(
        self, service, artifacts, finalized, owner, siwe_payload, db_session, monkeypatch
    ):
        def failing_record(self, *args, **kwargs):
            raise OperationalError("INSERT INTO audit_log", {}, Exception("disk I/O error"))

        monkeypatch.setattr(AuditService, "_record", failing_record)

        proof = record(service, owner, siwe_payload)
        assert db_session.query(ProofModel).count() == 1
        assert artifacts.require("campaign-1").state == "shared"

        with pytest.raises(ConflictError) as exc_info:
            record(service, owner, siwe_payload)
        assert exc_info.value.existing_id == proof.id

    def test_requires_session(self, service, finalized, owner, siwe_payload):
        with pytest.raises(AuthenticationError):
            record(service, owner, siwe_payload, siwe=None)

    def test_requires_owner(self, service, finalized, other, siwe_payload):
        with pytest.raises(AuthorizationError):
            record(service, other, siwe_payload)

    def test_requires_frozen_artifact(self, service, artifacts, owner, siwe_payload):
        artifacts.create(owner.address, campaign_id="campaign-1")
        artifacts.generate("campaign-1", "Bridging to Arc", [], owner.address)

        with pytest.raises(StateError) as exc_info:
            record(service, owner, siwe_payload)
        assert str(exc_info.value) == "Campaign must be finalized before recording proof"
        assert artifacts.require("campaign-1").state == "generated"

    def test_unknown_campaign(self, service, owner, siwe_payload):
        with pytest.raises(NotFoundError):
            record(service, owner, siwe_payload, campaign_id="missing")

    def test_proof_is_audited(self, service, artifacts, finalized, owner, siwe_payload):
        proof = record(service, owner, siwe_payload)
        proof_entries = service.audit.query_by_entity("Proof", proof.id)
        assert [e.action for e in proof_entries] == ["created"]

        history = artifacts.history("campaign-1")
        assert history[0]["after"] == {"status": "shared"}


class TestVerify:
    def test_valid_and_recorded(self, service, finalized, owner, siwe_payload):
        proof = record(service, owner, siwe_payload, tx_hash="0xfeed")
        result = service.verify("campaign-1", owner.address, proof.campaign_hash)

        assert result["valid"] is True
        assert result["proofExists"] is True
        assert result["expectedHash"] == proof.campaign_hash
        assert result["campaignStatus"] == "shared"
        assert result["proofDetails"]["proofId"] == proof.id
        assert result["proofDetails"]["txHash"] == "0xfeed"
        assert isinstance(result["proofDetails"]["recordedAt"], int)

    def test_hash_matches_but_nothing_recorded(self, service, finalized, owner):
        expected = campaign_hash("campaign-1", owner.address, finalized.caption_hash)
        result = service.verify("campaign-1", owner.address, expected)

        assert result["valid"] is True
        assert result["proofExists"] is False
        assert result["proofDetails"] is None

    def test_wrong_hash(self, service, finalized, owner, siwe_payload):
        record(service, owner, siwe_payload)
        result = service.verify("campaign-1", owner.address, "0x" + "0" * 64)
        assert result["valid"] is False
        assert result["proofExists"] is True

    def test_unknown_campaign(self, service, owner):
        with pytest.raises(NotFoundError):
            service.verify("missing", owner.address, "0x00")


class TestListAndStats:
    def test_list_newest_first_with_campaign(self, service, artifacts, owner, other, siwe_payload):
        make_finalized(artifacts, owner, siwe_payload, "c-1")
        make_finalized(artifacts, other, siwe_payload, "c-2")
        first = record(service, owner, siwe_payload, campaign_id="c-1")
        second = record(service, other, siwe_payload, campaign_id="c-2")

        proofs = service.list()
        assert [p["proofId"] for p in proofs] == [second.id, first.id]
        assert proofs[0]["campaign"]["id"] == "c-2"
        assert proofs[0]["campaign"]["status"] == "shared"

        mine = service.list(user_address=owner.address.upper().replace("0X", "0x"))
        assert [p["proofId"] for p in mine] == [first.id]

        by_campaign = service.list(campaign_id="c-2")
        assert [p["proofId"] for p in by_campaign] == [second.id]

    def test_stats(self, service, artifacts, owner, other, siwe_payload):
        assert service.stats() == {"totalProofs": 0, "uniqueUsers": 0}

        make_finalized(artifacts, owner, siwe_payload, "c-1")
        make_finalized(artifacts, owner, siwe_payload, "c-2")
        make_finalized(artifacts, other, siwe_payload, "c-3")
        record(service, owner, siwe_payload, campaign_id="c-1")
        record(service, owner, siwe_payload, campaign_id="c-2")
        record(service, other, siwe_payload, campaign_id="c-3")

        assert service.stats() == {"totalProofs": 3, "uniqueUsers": 2}
        assert service.stats(owner.address) == {
            "totalProofs": 3,
            "uniqueUsers": 2,
            "userProofs": 2,
        }
