"""
Request schemas for the intent proof service.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, conlist, constr

from ..artifacts.enums import IntentCategory
from ..artifacts.schemas import CampaignId, DAppId, ProvidedHash, WalletAddress
from ..auth.guard import SiwePayload

ActionStep = constr(min_length=1, max_length=100)

MAX_LIST_ITEMS = 20


class RecordProofRequest(BaseModel):
    """Attest a wallet's declared intent against a finalized artifact."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    campaign_id: CampaignId = Field(..., alias="campaignId")
    user_address: WalletAddress = Field(..., alias="userAddress")
    intent_category: IntentCategory = Field(
        IntentCategory.SOCIAL, alias="intentCategory"
    )
    target_dapps: conlist(DAppId, max_length=MAX_LIST_ITEMS) = Field(
        default_factory=list, alias="targetDApps"
    )
    action_order: conlist(ActionStep, max_length=MAX_LIST_ITEMS) = Field(
        default_factory=list,
        alias="actionOrder",
        description="Hashed in the given order; sequencing is meaningful",
    )
    tx_hash: Optional[constr(min_length=1, max_length=128)] = Field(
        None, alias="txHash"
    )
    siwe: Optional[SiwePayload] = Field(
        None, description="Required; checked by the ownership guard"
    )


class VerifyProofRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    campaign_id: CampaignId = Field(..., alias="campaignId")
    user_address: WalletAddress = Field(..., alias="userAddress")
    provided_hash: ProvidedHash = Field(..., alias="providedHash")
