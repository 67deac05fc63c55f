"""API-level tests for the /intent-proof-service endpoints."""

import pytest


def finalize_campaign(client, account, siwe_for, campaign_id="campaign-1"):
    client.post(
        "/artifact-service/create",
        json={"walletAddress": account.address, "campaignId": campaign_id},
    )
    client.post(
        "/artifact-service/generate",
        json={
            "campaignId": campaign_id,
            "rawCaption": "Bridging to Arc",
            "walletAddress": account.address,
        },
    )
    response = client.post(
        "/artifact-service/finalize",
        json={"campaignId": campaign_id, "walletAddress": account.address, "siwe": siwe_for(account)},
    )
    assert response.status_code == 200
    return response.json()["artifact"]


@pytest.fixture
def record_payload(owner, siwe_for):
    def _build(**overrides):
        payload = {
            "campaignId": "campaign-1",
            "userAddress": owner.address,
            "intentCategory": 1,
            "targetDApps": ["arcflow", "arc_swap"],
            "actionOrder": ["bridge", "swap"],
            "siwe": siwe_for(owner),
        }
        payload.update(overrides)
        return payload

    return _build


class TestRecord:
    def test_record_twice_returns_same_proof_id(self, client, owner, siwe_for, record_payload):
        finalize_campaign(client, owner, siwe_for)
        payload = record_payload()

        first = client.post("/intent-proof-service/record", json=payload)
        assert first.status_code == 201
        proof = first.json()["proof"]
        assert proof["proofId"]
        assert proof["intentFingerprint"].startswith("0x")
        assert proof["userAddress"] == owner.address.lower()

        second = client.post("/intent-proof-service/record", json=payload)
        assert second.status_code == 409
        assert second.json()["proofId"] == proof["proofId"]
        assert second.json()["error"] == "Proof already recorded for this campaign"

        status = client.get("/artifact-service/get", params={"id": "campaign-1"})
        assert status.json()["campaign"]["status"] == "shared"

    def test_default_category_is_social(self, client, owner, siwe_for, record_payload):
        finalize_campaign(client, owner, siwe_for)
        payload = record_payload()
        del payload["intentCategory"]
        response = client.post("/intent-proof-service/record", json=payload)
        assert response.json()["proof"]["intentCategory"] == 2

    def test_unknown_category(self, client, record_payload):
        response = client.post("/intent-proof-service/record", json=record_payload(intentCategory=9))
        assert response.status_code == 422

    def test_requires_siwe(self, client, owner, siwe_for, record_payload):
        finalize_campaign(client, owner, siwe_for)
        payload = record_payload()
        del payload["siwe"]
        response = client.post("/intent-proof-service/record", json=payload)
        assert response.status_code == 401

    def test_not_finalized(self, client, owner, record_payload):
        client.post(
            "/artifact-service/create",
            json={"walletAddress": owner.address, "campaignId": "campaign-1"},
        )
        response = client.post("/intent-proof-service/record", json=record_payload())
        assert response.status_code == 400
        assert response.json()["error"] == "Campaign must be finalized before recording proof"

    def test_unknown_campaign(self, client, record_payload):
        response = client.post(
            "/intent-proof-service/record", json=record_payload(campaignId="missing")
        )
        assert response.status_code == 404

    def test_action_order_limit(self, client, record_payload):
        response = client.post(
            "/intent-proof-service/record", json=record_payload(actionOrder=["step"] * 21)
        )
        assert response.status_code == 422


class TestQueries:
    def test_get_verify_stats(self, client, owner, other, siwe_for, record_payload):
        finalize_campaign(client, owner, siwe_for)
        proof = client.post("/intent-proof-service/record", json=record_payload()).json()["proof"]

        listing = client.get(
            "/intent-proof-service/get", params={"userAddress": owner.address}
        )
        assert listing.status_code == 200
        proofs = listing.json()["proofs"]
        assert [p["proofId"] for p in proofs] == [proof["proofId"]]
        assert proofs[0]["campaign"]["status"] == "shared"

        empty = client.get("/intent-proof-service/get", params={"userAddress": other.address})
        assert empty.json()["proofs"] == []

        verify = client.post(
            "/intent-proof-service/verify",
            json={
                "campaignId": "campaign-1",
                "userAddress": owner.address,
                "providedHash": proof["campaignHash"],
            },
        )
        assert verify.status_code == 200
        body = verify.json()
        assert body["valid"] is True
        assert body["proofExists"] is True
        assert body["expectedHash"] == proof["campaignHash"]
        assert body["providedHash"] == proof["campaignHash"]
        assert body["campaignStatus"] == "shared"

        stats = client.get("/intent-proof-service/stats", params={"userAddress": owner.address})
        assert stats.json() == {"stats": {"totalProofs": 1, "uniqueUsers": 1, "userProofs": 1}}

        global_stats = client.get("/intent-proof-service/stats")
        assert global_stats.json() == {"stats": {"totalProofs": 1, "uniqueUsers": 1}}

    def test_verify_without_proof(self, client, owner, other, siwe_for):
        finalize_campaign(client, owner, siwe_for)
        response = client.post(
            "/intent-proof-service/verify",
            json={"campaignId": "campaign-1", "userAddress": other.address, "providedHash": "0x00"},
        )
        body = response.json()
        assert body["valid"] is False
        assert body["proofExists"] is False
        assert body["proofDetails"] is None

    def test_invalid_address_filter(self, client):
        response = client.get("/intent-proof-service/get", params={"userAddress": "nope"})
        assert response.status_code == 422
