"""
Request schemas for the artifact service.

Field names on the wire are camelCase; Python attributes are snake_case.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, conlist, constr

from ..auth.guard import SiwePayload
from ..auth.siwe import ADDRESS_PATTERN

WalletAddress = constr(pattern=ADDRESS_PATTERN)
CampaignId = constr(min_length=1, max_length=64)
DAppId = constr(min_length=1, max_length=100)
ImageUrl = constr(min_length=1, max_length=2000)
ProvidedHash = constr(min_length=1, max_length=128)

MAX_TARGET_DAPPS = 20


class _Request(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ArtifactCreate(_Request):
    """Create a Draft artifact owned by wallet_address."""

    wallet_address: WalletAddress = Field(..., alias="walletAddress")
    campaign_id: Optional[CampaignId] = Field(
        None, alias="campaignId", description="Caller-chosen id; generated if omitted"
    )
    campaign_type: constr(min_length=1, max_length=100) = Field(
        "general", alias="campaignType"
    )
    image_style: constr(min_length=1, max_length=100) = Field(
        "default", alias="imageStyle"
    )


class GenerateRequest(_Request):
    """Submit raw caption text for policy validation (soft auth)."""

    campaign_id: CampaignId = Field(..., alias="campaignId")
    raw_caption: constr(min_length=1, max_length=5000) = Field(..., alias="rawCaption")
    target_dapps: conlist(DAppId, max_length=MAX_TARGET_DAPPS) = Field(
        default_factory=list, alias="targetDApps"
    )
    wallet_address: WalletAddress = Field(..., alias="walletAddress")
    siwe: Optional[SiwePayload] = None


class AttachImageRequest(_Request):
    """Attach an image reference to an editable artifact (soft auth)."""

    campaign_id: CampaignId = Field(..., alias="campaignId")
    image_url: ImageUrl = Field(..., alias="imageUrl")
    wallet_address: WalletAddress = Field(..., alias="walletAddress")
    siwe: Optional[SiwePayload] = None


class FinalizeRequest(_Request):
    """Freeze an artifact's content (hard auth)."""

    campaign_id: CampaignId = Field(..., alias="campaignId")
    image_url: Optional[ImageUrl] = Field(None, alias="imageUrl")
    wallet_address: WalletAddress = Field(..., alias="walletAddress")
    siwe: Optional[SiwePayload] = Field(
        None, description="Required; checked by the ownership guard"
    )


class VerifyArtifactRequest(_Request):
    campaign_id: CampaignId = Field(..., alias="campaignId")
    provided_hash: ProvidedHash = Field(..., alias="providedHash")


__all__ = [
    "ArtifactCreate",
    "AttachImageRequest",
    "FinalizeRequest",
    "GenerateRequest",
    "VerifyArtifactRequest",
    "WalletAddress",
    "CampaignId",
    "DAppId",
    "ProvidedHash",
]
