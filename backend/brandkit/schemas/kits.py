"""Pydantic schemas for the brand kit API endpoints.

Request bodies for the action endpoints stay loose on purpose: the
service validates them field by field so the client gets the documented
error messages instead of a generic 422. Responses are camelCase.

- CreateKitRequest / UpdateKitRequest: kit creation and profile edits
- AssetActionRequest / IntelligenceActionRequest: action-dispatched bodies
- *Response: success bodies, all carrying "ok": true
- ErrorResponse: the {"ok": false, ...} envelope
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from brandkit.schemas.brand_kit import (
    AssetCampaign,
    BrandKitPalette,
    BrandProfile,
    BrandVoice,
    CampaignIntelligence,
    KitMeta,
)


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# REQUESTS
# =============================================================================


class CreateKitRequest(ApiModel):
    """Request schema for generating a new brand kit."""

    mode: str = Field(..., min_length=1, max_length=50, examples=["business"])
    business: str = Field(
        ...,
        min_length=1,
        max_length=500,
        examples=["Neighborhood bakery with vegan pastries"],
    )
    vibe: str = Field(..., min_length=1, max_length=200, examples=["warm, playful, local"])
    primary: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    secondary: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")

    @field_validator("mode", "business", "vibe")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("value cannot be empty")
        return v


class UpdateKitRequest(ApiModel):
    """Profile and/or constraints edit. Presence of each key is significant."""

    profile: Any = None
    constraints: Any = None


class AssetActionRequest(ApiModel):
    """POST /kits/{id}/assets body, dispatched on `action` or `type`."""

    model_config = ConfigDict(extra="allow")

    action: Any = Field(
        None,
        description="create_campaign | update_campaign_context | variant_caption_pack",
    )
    type: Any = Field(None, description='"caption_pack" for a root caption pack')


class IntelligenceActionRequest(ApiModel):
    action: Any = Field(None, description="generate_brief | update_brief")
    brief: Any = Field(None, description="Partial brief for update_brief")


# =============================================================================
# RESPONSES
# =============================================================================


class KitSummary(ApiModel):
    id: str
    mode: str
    business: str
    vibe: str
    name: str | None = None
    primary: str | None = None
    valid: bool
    version: int
    created_at: str
    updated_at: str


class KitDetail(ApiModel):
    id: str
    mode: str
    business: str
    vibe: str
    created_at: str
    updated_at: str
    palette: BrandKitPalette
    profile: BrandProfile
    voice_ai: BrandVoice | None = None
    meta: KitMeta
    campaigns: list[AssetCampaign] = Field(default_factory=list)


class KitListResponse(ApiModel):
    ok: bool = True
    kits: list[KitSummary]


class KitResponse(ApiModel):
    ok: bool = True
    kit: KitDetail


class ActionResponse(ApiModel):
    """Success body for mutating endpoints."""

    ok: bool = True
    version: int | None = None
    campaign_id: str | None = None
    item_id: str | None = None


class VoiceResponse(ApiModel):
    ok: bool = True
    voice_ai: BrandVoice


class CampaignListResponse(ApiModel):
    ok: bool = True
    campaigns: list[AssetCampaign]


class CampaignResponse(ApiModel):
    ok: bool = True
    campaign: AssetCampaign


class IntelligenceResponse(ApiModel):
    ok: bool = True
    intelligence: CampaignIntelligence


class KitDiagnosticsResponse(ApiModel):
    ok: bool = True
    id: str
    found: bool
    match: bool
    valid: bool
    reason: str = Field(..., examples=["ok", "not-found", "user-mismatch", "invalid-kit-json"])


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    code: str
    request_id: str
