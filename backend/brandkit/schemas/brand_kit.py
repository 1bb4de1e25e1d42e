"""Pydantic models for the brand kit JSON document.

One model per entity stored in the kit_json column. Field names are
snake_case in Python and camelCase in the stored document, so
`model.to_document()` yields exactly the persisted shape.

Readers never hand raw storage to these models directly:
values are trimmed, clamped and counted first, then validated here as a
second gate. A ValidationError at that point means "discard the value".
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

HookStyle = Literal["Curiosity", "Pain", "Proof"]
VariantMode = Literal["hooks_only", "captions_only", "ctas_only"]
VariantTone = Literal["softer", "default", "bolder"]
BriefSource = Literal["ai", "user"]
AssetType = Literal["caption_pack"]

HOOK_STYLES: tuple[str, ...] = ("Curiosity", "Pain", "Proof")
VARIANT_MODES: tuple[str, ...] = ("hooks_only", "captions_only", "ctas_only")
VARIANT_TONES: tuple[str, ...] = ("softer", "default", "bolder")

HexColor = str


class DocumentModel(BaseModel):
    """Base for document entities (camelCase aliases, immutable)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Serialize to the stored JSON shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# PALETTE, PROFILE, VOICE, META
# =============================================================================


class BrandKitPalette(DocumentModel):
    """Colors and fonts produced by the first kit generation."""

    primary: HexColor = Field(pattern=r"^#[0-9A-Fa-f]{6}$", examples=["#7C3AED"])
    secondary: HexColor = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    accent: HexColor = Field(pattern=r"^#[0-9A-Fa-f]{6}$")
    neutrals: list[HexColor] = Field(min_length=4, max_length=4)
    headline_font: str = Field(min_length=1, examples=["Space Grotesk"])
    body_font: str = Field(min_length=1, examples=["Inter"])


class ToneSliders(DocumentModel):
    bold: int = Field(default=50, ge=0, le=100)
    playful: int = Field(default=50, ge=0, le=100)
    formal: int = Field(default=50, ge=0, le=100)
    emotional: int = Field(default=50, ge=0, le=100)


class BrandConstraints(DocumentModel):
    """Writing rules applied to every generated asset."""

    formality: int = Field(default=50, ge=0, le=100)
    humor: int = Field(default=20, ge=0, le=100)
    intensity: int = Field(default=50, ge=0, le=100)
    allow_words: list[str] = Field(default_factory=list, max_length=6)
    avoid_words: list[str] = Field(default_factory=list, max_length=6)


class BrandProfile(DocumentModel):
    name: str = ""
    audience: str = ""
    description: str = ""
    tone: ToneSliders = Field(default_factory=ToneSliders)
    constraints: BrandConstraints = Field(default_factory=BrandConstraints)


class BrandVoice(DocumentModel):
    """AI-suggested voice guidance stored under voiceAi."""

    taglines: list[str] = Field(min_length=3, max_length=3)
    voice_summary: str
    guidelines: list[str] = Field(min_length=3, max_length=6)
    do: list[str] = Field(min_length=3, max_length=6)
    dont: list[str] = Field(min_length=3, max_length=6)
    sample_lines: list[str] = Field(min_length=3, max_length=3)


class KitMeta(DocumentModel):
    version: int = Field(default=1, ge=1)
    updated_at: str | None = None
    profile_updated_at: str | None = None
    voice_updated_at: str | None = None
    assets_updated_at: str | None = None


# =============================================================================
# CAMPAIGN INTELLIGENCE
# =============================================================================


class ObjectionPair(DocumentModel):
    objection: str = Field(min_length=1, max_length=180)
    response: str = Field(min_length=1, max_length=220)


class CampaignBrief(DocumentModel):
    """Complete campaign strategy brief. Partial briefs are never stored."""

    angle: str = Field(min_length=1, max_length=180)
    promise: str = Field(min_length=1, max_length=200)
    proof_points: list[str] = Field(min_length=3, max_length=3)
    objections: list[ObjectionPair] = Field(min_length=2, max_length=3)
    pillars: list[str] = Field(min_length=3, max_length=3)
    do: list[str] = Field(min_length=3, max_length=6)
    dont: list[str] = Field(min_length=3, max_length=6)


class CampaignIntelligence(DocumentModel):
    brief: CampaignBrief
    source: BriefSource = "ai"
    updated_at: str


# =============================================================================
# CAPTION PACKS
# =============================================================================


class CaptionPackInput(DocumentModel):
    goal: str = Field(default="", max_length=120)
    cta: str = Field(default="", max_length=120)
    topic: str | None = Field(default=None, max_length=280)


class CaptionPackOutputV1(DocumentModel):
    """Legacy flat caption pack, read but no longer generated."""

    hooks: list[str] = Field(min_length=3, max_length=3)
    captions: list[str] = Field(min_length=3, max_length=3)
    notes: str | None = Field(default=None, max_length=280)


class HookLine(DocumentModel):
    style: HookStyle
    text: str = Field(min_length=1, max_length=120)


class CaptionLine(DocumentModel):
    text: str = Field(min_length=1, max_length=500)
    cta_line: str = Field(min_length=1, max_length=90)


class CaptionPackOutputV2(DocumentModel):
    angle: str = Field(min_length=1, max_length=140)
    hooks: list[HookLine] = Field(min_length=3, max_length=3)
    captions: list[CaptionLine] = Field(min_length=3, max_length=3)


CaptionPackOutput = CaptionPackOutputV1 | CaptionPackOutputV2


class VariantSpec(DocumentModel):
    mode: VariantMode
    tone: VariantTone = "default"


class AssetItem(DocumentModel):
    """One generated caption pack inside a campaign."""

    id: str = Field(min_length=1)
    type: AssetType = "caption_pack"
    output_version: Literal[1, 2]
    created_at: str
    parent_id: str | None = None
    variant: VariantSpec | None = None
    input: CaptionPackInput
    output: CaptionPackOutput

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


class AssetCampaign(DocumentModel):
    id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=60)
    goal: str = Field(min_length=1, max_length=80)
    platform: str = Field(min_length=1, max_length=40)
    cta_style: str | None = Field(default=None, max_length=30)
    tone_override: str | None = Field(default=None, max_length=60)
    notes: str | None = Field(default=None, max_length=280)
    created_at: str
    updated_at: str
    intelligence: CampaignIntelligence | None = None
    items: list[AssetItem] = Field(default_factory=list)
