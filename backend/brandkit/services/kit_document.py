"""Brand kit document readers and writers.

The kit document is schema-less JSON with several historical shapes in
production and old documents are never migrated in place. Readers are
total: any stored value comes back as a validated model, a default, or
None/[] (never an exception). Migration happens on read; writers always
emit the current shape.

Writers never mutate their input. Each returns a new document with the
changed fragment and an updated `meta` (version + 1, timestamps).
"""

from typing import Any

from pydantic import ValidationError

from brandkit.schemas.brand_kit import (
    VARIANT_MODES,
    VARIANT_TONES,
    AssetCampaign,
    AssetItem,
    BrandConstraints,
    BrandKitPalette,
    BrandProfile,
    BrandVoice,
    CampaignIntelligence,
    CaptionPackInput,
    KitMeta,
    ToneSliders,
    VariantSpec,
)
from brandkit.services.caption_pack import output_version, read_caption_pack
from brandkit.services.campaign_brief import validate_complete_brief
from brandkit.utils.normalize import (
    clamp_to_range,
    normalize_hex_color,
    normalize_word_list,
    read_object,
    read_string_list,
    safe_timestamp,
    timestamp_sort_key,
    trim_and_clamp,
)

# Campaign bounds
CAMPAIGN_NAME_MAX = 60
CAMPAIGN_GOAL_MAX = 80
CAMPAIGN_PLATFORM_MAX = 40
CAMPAIGN_CTA_STYLE_MAX = 30
CAMPAIGN_TONE_OVERRIDE_MAX = 60
CAMPAIGN_NOTES_MAX = 280

# Caption pack request bounds
ITEM_GOAL_MAX = 120
ITEM_CTA_MAX = 120
ITEM_TOPIC_MAX = 280

# Profile text bounds
PROFILE_NAME_MAX = 120
PROFILE_AUDIENCE_MAX = 160
PROFILE_DESCRIPTION_MAX = 280

VOICE_LINE_MAX = 280
VOICE_SUMMARY_MAX = 600

DEFAULT_TONE = 50
DEFAULT_FORMALITY = 50
DEFAULT_HUMOR = 20
DEFAULT_INTENSITY = 50

# Older campaigns were created before goal/platform were required
DEFAULT_CAMPAIGN_GOAL = "Awareness"
DEFAULT_CAMPAIGN_PLATFORM = "Instagram"

LEGACY_CAMPAIGN_ID = "general"
LEGACY_CAMPAIGN_NAME = "General"

META_SECTIONS = ("profile", "voice", "assets")

# Stored versions must leave room for one bump inside the int4 version column
MAX_DOCUMENT_VERSION = 2**31 - 1


# =============================================================================
# READERS
# =============================================================================


def read_kit_document(value: Any) -> dict[str, Any]:
    """The stored root object, or an empty document."""
    return read_object(value) or {}


def read_brand_kit_palette(value: Any) -> BrandKitPalette | None:
    """Palette and fonts, or None when the kit is incomplete."""
    document = read_object(value)
    if document is None:
        return None

    primary = normalize_hex_color(document.get("primary"))
    secondary = normalize_hex_color(document.get("secondary"))
    accent = normalize_hex_color(document.get("accent"))
    if primary is None or secondary is None or accent is None:
        return None

    raw_neutrals = document.get("neutrals")
    if not isinstance(raw_neutrals, list) or len(raw_neutrals) != 4:
        return None
    neutrals = [normalize_hex_color(entry) for entry in raw_neutrals]
    if any(entry is None for entry in neutrals):
        return None

    headline_font = trim_and_clamp(document.get("headlineFont"), 80)
    body_font = trim_and_clamp(document.get("bodyFont"), 80)
    if not headline_font or not body_font:
        return None

    try:
        return BrandKitPalette(
            primary=primary,
            secondary=secondary,
            accent=accent,
            neutrals=neutrals,
            headline_font=headline_font,
            body_font=body_font,
        )
    except ValidationError:
        return None


def read_tone(value: Any) -> ToneSliders:
    tone = read_object(value) or {}
    return ToneSliders(
        bold=clamp_to_range(tone.get("bold"), 0, 100, DEFAULT_TONE),
        playful=clamp_to_range(tone.get("playful"), 0, 100, DEFAULT_TONE),
        formal=clamp_to_range(tone.get("formal"), 0, 100, DEFAULT_TONE),
        emotional=clamp_to_range(tone.get("emotional"), 0, 100, DEFAULT_TONE),
    )


def read_constraints(value: Any) -> BrandConstraints:
    constraints = read_object(value) or {}
    return BrandConstraints(
        formality=clamp_to_range(constraints.get("formality"), 0, 100, DEFAULT_FORMALITY),
        humor=clamp_to_range(constraints.get("humor"), 0, 100, DEFAULT_HUMOR),
        intensity=clamp_to_range(constraints.get("intensity"), 0, 100, DEFAULT_INTENSITY),
        allow_words=normalize_word_list(constraints.get("allowWords")),
        avoid_words=normalize_word_list(constraints.get("avoidWords")),
    )


def read_profile(value: Any) -> BrandProfile:
    """Profile with defaults for anything missing or malformed."""
    profile = read_object(value) or {}
    return BrandProfile(
        name=trim_and_clamp(profile.get("name"), PROFILE_NAME_MAX),
        audience=trim_and_clamp(profile.get("audience"), PROFILE_AUDIENCE_MAX),
        description=trim_and_clamp(profile.get("description"), PROFILE_DESCRIPTION_MAX),
        tone=read_tone(profile.get("tone")),
        constraints=read_constraints(profile.get("constraints")),
    )


def read_voice(value: Any) -> BrandVoice | None:
    """AI voice suggestions, or None when any list has the wrong size."""
    voice = read_object(value)
    if voice is None:
        return None

    taglines = read_string_list(voice.get("taglines"), 3, 3, VOICE_LINE_MAX)
    guidelines = read_string_list(voice.get("guidelines"), 3, 6, VOICE_LINE_MAX)
    do_list = read_string_list(voice.get("do"), 3, 6, VOICE_LINE_MAX)
    dont_list = read_string_list(voice.get("dont"), 3, 6, VOICE_LINE_MAX)
    sample_lines = read_string_list(voice.get("sampleLines"), 3, 3, VOICE_LINE_MAX)
    summary = voice.get("voiceSummary")
    if not isinstance(summary, str):
        return None
    if None in (taglines, guidelines, do_list, dont_list, sample_lines):
        return None

    return BrandVoice(
        taglines=taglines,
        voice_summary=summary.strip()[:VOICE_SUMMARY_MAX],
        guidelines=guidelines,
        do=do_list,
        dont=dont_list,
        sample_lines=sample_lines,
    )


def read_meta(value: Any) -> KitMeta:
    """Meta block; version is a positive number floored, otherwise 1.

    Versions at or above MAX_DOCUMENT_VERSION read as 1.
    """
    meta = read_object(value)
    if meta is None:
        return KitMeta()

    raw_version = meta.get("version")
    version = 1
    if (
        isinstance(raw_version, (int, float))
        and not isinstance(raw_version, bool)
        and 0 < raw_version < MAX_DOCUMENT_VERSION
    ):
        version = max(1, int(raw_version))

    def _timestamp(key: str) -> str | None:
        stamp = meta.get(key)
        return stamp if isinstance(stamp, str) else None

    return KitMeta(
        version=version,
        updated_at=_timestamp("updatedAt"),
        profile_updated_at=_timestamp("profileUpdatedAt"),
        voice_updated_at=_timestamp("voiceUpdatedAt"),
        assets_updated_at=_timestamp("assetsUpdatedAt"),
    )


def document_version(document: Any) -> int:
    return read_meta(read_kit_document(document).get("meta")).version


def read_campaign_intelligence(value: Any) -> CampaignIntelligence | None:
    intelligence = read_object(value)
    if intelligence is None:
        return None
    brief = validate_complete_brief(intelligence.get("brief"))
    updated_at = intelligence.get("updatedAt")
    if brief is None or not isinstance(updated_at, str):
        return None
    source = "user" if intelligence.get("source") == "user" else "ai"
    return CampaignIntelligence(brief=brief, source=source, updated_at=updated_at)


def _read_id(value: Any) -> str | None:
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()


def _read_variant(value: Any) -> VariantSpec | None:
    variant = read_object(value)
    if variant is None or variant.get("mode") not in VARIANT_MODES:
        return None
    tone = variant.get("tone")
    return VariantSpec(mode=variant["mode"], tone=tone if tone in VARIANT_TONES else "default")


def read_asset_item(value: Any, fallback_timestamp: str) -> AssetItem | None:
    """One stored caption pack, or None when it cannot be reconstructed."""
    item = read_object(value)
    if item is None:
        return None

    item_id = _read_id(item.get("id"))
    raw_input = read_object(item.get("input"))
    if item_id is None or item.get("type") != "caption_pack" or raw_input is None:
        return None

    output = read_caption_pack(item)
    if output is None:
        return None

    parent_id = _read_id(item.get("parentId"))
    variant = _read_variant(item.get("variant")) if parent_id else None
    if variant is None:
        parent_id = None

    try:
        return AssetItem(
            id=item_id,
            output_version=output_version(output),
            created_at=safe_timestamp(item.get("createdAt"), fallback_timestamp),
            parent_id=parent_id,
            variant=variant,
            input=CaptionPackInput(
                goal=trim_and_clamp(raw_input.get("goal"), ITEM_GOAL_MAX),
                cta=trim_and_clamp(raw_input.get("cta"), ITEM_CTA_MAX),
                topic=trim_and_clamp(raw_input.get("topic"), ITEM_TOPIC_MAX) or None,
            ),
            output=output,
        )
    except ValidationError:
        return None


def _read_items(value: Any, fallback_timestamp: str) -> list[AssetItem]:
    """Items newest first; duplicates dropped and dangling variants demoted."""
    if not isinstance(value, list):
        return []

    items: list[AssetItem] = []
    seen: set[str] = set()
    for entry in value:
        item = read_asset_item(entry, fallback_timestamp)
        if item is None or item.id in seen:
            continue
        seen.add(item.id)
        items.append(item)

    root_ids = {item.id for item in items if item.is_root and item.output_version == 2}
    items = [
        item
        if item.is_root or item.parent_id in root_ids
        else item.model_copy(update={"parent_id": None, "variant": None})
        for item in items
    ]
    return sorted(items, key=lambda item: timestamp_sort_key(item.created_at), reverse=True)


def _optional_text(value: Any, max_len: int) -> str | None:
    return trim_and_clamp(value, max_len) or None


def read_campaign(value: Any, fallback_timestamp: str) -> AssetCampaign | None:
    campaign = read_object(value)
    if campaign is None:
        return None

    campaign_id = _read_id(campaign.get("id"))
    name = trim_and_clamp(campaign.get("name"), CAMPAIGN_NAME_MAX)
    if campaign_id is None or not name:
        return None

    created_at = safe_timestamp(campaign.get("createdAt"), fallback_timestamp)
    try:
        return AssetCampaign(
            id=campaign_id,
            name=name,
            goal=trim_and_clamp(campaign.get("goal"), CAMPAIGN_GOAL_MAX)
            or DEFAULT_CAMPAIGN_GOAL,
            platform=trim_and_clamp(campaign.get("platform"), CAMPAIGN_PLATFORM_MAX)
            or DEFAULT_CAMPAIGN_PLATFORM,
            cta_style=_optional_text(campaign.get("ctaStyle"), CAMPAIGN_CTA_STYLE_MAX),
            tone_override=_optional_text(
                campaign.get("toneOverride"), CAMPAIGN_TONE_OVERRIDE_MAX
            ),
            notes=_optional_text(campaign.get("notes"), CAMPAIGN_NOTES_MAX),
            created_at=created_at,
            updated_at=safe_timestamp(campaign.get("updatedAt"), created_at),
            intelligence=read_campaign_intelligence(campaign.get("intelligence")),
            items=_read_items(campaign.get("items"), created_at),
        )
    except ValidationError:
        return None


def sort_campaigns(campaigns: list[AssetCampaign]) -> list[AssetCampaign]:
    """Newest updatedAt first (updatedAt falls back to createdAt on read)."""
    return sorted(
        campaigns,
        key=lambda campaign: timestamp_sort_key(campaign.updated_at or campaign.created_at),
        reverse=True,
    )


def read_asset_campaigns(assets_value: Any, fallback_timestamp: str) -> list[AssetCampaign]:
    """Campaigns from `assets`, in either stored shape.

    Current shape: {"campaigns": [...]}; malformed campaigns and items are
    skipped. Pre-campaign shape: {"items": [...]}, read as one implicit
    "General" campaign created at fallback_timestamp.
    """
    assets = read_object(assets_value)
    if assets is None:
        return []

    raw_campaigns = assets.get("campaigns")
    if isinstance(raw_campaigns, list):
        campaigns: list[AssetCampaign] = []
        seen: set[str] = set()
        for entry in raw_campaigns:
            campaign = read_campaign(entry, fallback_timestamp)
            if campaign is None or campaign.id in seen:
                continue
            seen.add(campaign.id)
            campaigns.append(campaign)
        return sort_campaigns(campaigns)

    items = _read_items(assets.get("items"), fallback_timestamp)
    if not items:
        return []
    return [
        AssetCampaign(
            id=LEGACY_CAMPAIGN_ID,
            name=LEGACY_CAMPAIGN_NAME,
            goal=DEFAULT_CAMPAIGN_GOAL,
            platform=DEFAULT_CAMPAIGN_PLATFORM,
            created_at=fallback_timestamp,
            updated_at=fallback_timestamp,
            items=items,
        )
    ]


def find_campaign(campaigns: list[AssetCampaign], campaign_id: str) -> AssetCampaign | None:
    return next((campaign for campaign in campaigns if campaign.id == campaign_id), None)


# =============================================================================
# WRITERS
# =============================================================================


def update_meta(
    document: dict[str, Any], now: str, section: str | None = None
) -> dict[str, Any]:
    """Next meta block: version + 1, updatedAt and the section stamp set to now."""
    current = read_meta(document.get("meta"))
    meta = current.to_document()
    meta["version"] = current.version + 1
    meta["updatedAt"] = now
    if section in META_SECTIONS:
        meta[f"{section}UpdatedAt"] = now
    return meta


def save_campaigns(
    document: dict[str, Any], campaigns: list[AssetCampaign], now: str
) -> dict[str, Any]:
    """Replace assets wholesale with the current campaigns shape."""
    return {
        **document,
        "assets": {"campaigns": [campaign.to_document() for campaign in campaigns]},
        "meta": update_meta(document, now, "assets"),
    }


def save_profile(
    document: dict[str, Any],
    profile_fields: dict[str, Any] | None,
    constraints: BrandConstraints | None,
    now: str,
) -> dict[str, Any]:
    """Shallow-merge profile fields and replace constraints when given."""
    profile = dict(read_object(document.get("profile")) or {})
    if profile_fields:
        profile.update(profile_fields)
    if constraints is not None:
        profile["constraints"] = constraints.to_document()
    return {
        **document,
        "profile": profile,
        "meta": update_meta(document, now, "profile"),
    }


def save_voice(document: dict[str, Any], voice: BrandVoice, now: str) -> dict[str, Any]:
    return {
        **document,
        "voiceAi": voice.to_document(),
        "meta": update_meta(document, now, "voice"),
    }


def new_kit_document(palette: BrandKitPalette, now: str) -> dict[str, Any]:
    """Initial document written by the first kit generation."""
    return {
        **palette.to_document(),
        "meta": KitMeta(version=1, updated_at=now).to_document(),
    }
