"""API-level tests for the /artifact-service endpoints."""

import pytest

from intent_attest.hashing import artifact_hash

IMAGE = "https://img.example/campaign.png"


@pytest.fixture
def campaign(client, owner) -> str:
    response = client.post(
        "/artifact-service/create",
        json={"walletAddress": owner.address, "campaignId": "campaign-1"},
    )
    assert response.status_code == 201
    return "campaign-1"


@pytest.fixture
def generated(client, campaign, owner) -> dict:
    response = client.post(
        "/artifact-service/generate",
        json={
            "campaignId": campaign,
            "rawCaption": "Bridging to Arc today",
            "targetDApps": ["arcflow"],
            "walletAddress": owner.address,
        },
    )
    assert response.status_code == 200
    return response.json()["artifact"]


@pytest.fixture
def finalized(client, generated, owner, siwe_for) -> dict:
    response = client.post(
        "/artifact-service/finalize",
        json={
            "campaignId": "campaign-1",
            "imageUrl": IMAGE,
            "walletAddress": owner.address,
            "siwe": siwe_for(owner),
        },
    )
    assert response.status_code == 200
    return response.json()["artifact"]


class TestCreateAndGet:
    def test_create(self, client, owner):
        response = client.post(
            "/artifact-service/create",
            json={"walletAddress": owner.address, "campaignType": "launch"},
        )
        assert response.status_code == 201
        campaign = response.json()["campaign"]
        assert campaign["status"] == "draft"
        assert campaign["walletAddress"] == owner.address.lower()
        assert campaign["campaignType"] == "launch"

    def test_create_duplicate(self, client, campaign, owner):
        response = client.post(
            "/artifact-service/create",
            json={"walletAddress": owner.address, "campaignId": campaign},
        )
        assert response.status_code == 409
        assert response.json()["campaignId"] == campaign

    def test_create_invalid_address(self, client):
        response = client.post("/artifact-service/create", json={"walletAddress": "0x123"})
        assert response.status_code == 422

    def test_get(self, client, campaign):
        response = client.get("/artifact-service/get", params={"id": campaign})
        assert response.status_code == 200
        assert response.json()["campaign"]["id"] == campaign

    def test_get_unknown(self, client):
        response = client.get("/artifact-service/get", params={"id": "missing"})
        assert response.status_code == 404
        assert response.json() == {"error": "Campaign not found", "code": "NOT_FOUND"}


class TestGenerate:
    def test_generate(self, generated):
        assert generated["campaignId"] == "campaign-1"
        assert "@ArcFlowFinance" in generated["caption"]
        assert len(generated["captionHash"]) == 64

    def test_violations_returned_as_data(self, client, campaign, owner):
        response = client.post(
            "/artifact-service/generate",
            json={
                "campaignId": campaign,
                "rawCaption": "Guaranteed returns, 100x moon soon",
                "walletAddress": owner.address,
            },
        )
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Content validation failed"
        assert body["violations"] == ["guaranteed returns", "100x", "moon"]

    def test_non_owner(self, client, campaign, other):
        response = client.post(
            "/artifact-service/generate",
            json={"campaignId": campaign, "rawCaption": "hi", "walletAddress": other.address},
        )
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_OWNER"

    def test_bad_optional_session_hides_reason(
        self, client, campaign, owner, other, siwe_for, sign_text
    ):
        siwe = siwe_for(owner)
        siwe["signature"] = sign_text(other, siwe["message"])
        response = client.post(
            "/artifact-service/generate",
            json={
                "campaignId": campaign,
                "rawCaption": "hi",
                "walletAddress": owner.address,
                "siwe": siwe,
            },
        )
        assert response.status_code == 401
        assert response.json() == {
            "error": "Authentication failed",
            "code": "AUTHENTICATION_FAILED",
        }

    @pytest.mark.parametrize(
        "overrides",
        [
            {"rawCaption": ""},
            {"rawCaption": "a" * 5001},
            {"targetDApps": ["x"] * 21},
            {"targetDApps": ["x" * 101]},
            {"campaignId": "c" * 65},
            {"unexpected": True},
        ],
    )
    def test_input_limits(self, client, campaign, owner, overrides):
        payload = {
            "campaignId": campaign,
            "rawCaption": "hi",
            "walletAddress": owner.address,
        }
        payload.update(overrides)
        response = client.post("/artifact-service/generate", json=payload)
        assert response.status_code == 422


class TestAttachImage:
    def test_attach(self, client, campaign, owner):
        response = client.post(
            "/artifact-service/attach-image",
            json={"campaignId": campaign, "imageUrl": IMAGE, "walletAddress": owner.address},
        )
        assert response.status_code == 200
        assert response.json()["campaign"]["imageUrl"] == IMAGE

    def test_attach_after_finalize(self, client, finalized, owner):
        response = client.post(
            "/artifact-service/attach-image",
            json={
                "campaignId": "campaign-1",
                "imageUrl": "https://img.example/other.png",
                "walletAddress": owner.address,
            },
        )
        assert response.status_code == 400
        assert response.json()["currentState"] == "finalized"


class TestFinalize:
    def test_finalize(self, finalized):
        assert finalized["immutable"] is True
        assert finalized["imageUrl"] == IMAGE
        assert finalized["artifactHash"] == artifact_hash(finalized["caption"], IMAGE)
        assert finalized["finalizedAt"] is not None

    def test_finalize_requires_siwe(self, client, generated, owner):
        response = client.post(
            "/artifact-service/finalize",
            json={"campaignId": "campaign-1", "walletAddress": owner.address},
        )
        assert response.status_code == 401

    def test_finalize_draft(self, client, campaign, owner, siwe_for):
        response = client.post(
            "/artifact-service/finalize",
            json={"campaignId": campaign, "walletAddress": owner.address, "siwe": siwe_for(owner)},
        )
        assert response.status_code == 400
        assert response.json() == {
            "error": "Cannot finalize campaign in draft state. Must be in 'generated' state.",
            "code": "INVALID_TRANSITION",
            "currentState": "draft",
            "requiredState": "generated",
        }

    def test_finalize_twice(self, client, finalized, owner, siwe_for):
        response = client.post(
            "/artifact-service/finalize",
            json={"campaignId": "campaign-1", "walletAddress": owner.address, "siwe": siwe_for(owner)},
        )
        assert response.status_code == 400
        assert response.json()["currentState"] == "finalized"


class TestVerifyAndShare:
    def test_verify(self, client, finalized):
        for _ in range(2):
            response = client.post(
                "/artifact-service/verify",
                json={"campaignId": "campaign-1", "providedHash": finalized["artifactHash"]},
            )
            assert response.status_code == 200
            body = response.json()
            assert body == {
                "valid": True,
                "calculatedHash": finalized["artifactHash"],
                "providedHash": finalized["artifactHash"],
                "status": "finalized",
            }

    def test_verify_mismatch(self, client, finalized):
        response = client.post(
            "/artifact-service/verify",
            json={"campaignId": "campaign-1", "providedHash": "deadbeef"},
        )
        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_share_payload(self, client, finalized):
        response = client.get("/artifact-service/get-share-payload", params={"id": "campaign-1"})
        assert response.status_code == 200
        payload = response.json()["sharePayload"]
        assert payload["frozen"] is True
        assert payload["artifactHash"] == finalized["artifactHash"]
        assert payload["publicUrl"].endswith("/campaign/campaign-1")

    def test_share_payload_before_finalize(self, client, generated):
        response = client.get("/artifact-service/get-share-payload", params={"id": "campaign-1"})
        assert response.status_code == 400

    def test_history(self, client, finalized):
        response = client.get("/artifact-service/history", params={"id": "campaign-1"})
        assert response.status_code == 200
        body = response.json()
        assert body["count"] == len(body["entries"]) >= 3
        assert body["entries"][0]["action"] == "status_changed"
