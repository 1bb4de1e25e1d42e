"""BrandKitService: request handlers for brand kit documents.

Every mutating handler follows the same read-modify-write cycle:
1. Load the record for (kit_id, owner_id) and read the document with the
   total readers in kit_document.
2. Compute the new document in memory (generation happens here).
3. Replace the whole document with BrandKitRepository.replace_document.

No lock is held across the cycle. By default the last writer wins; with
KIT_WRITE_VERSION_CHECK enabled the write is conditional on the version
read in step 1 and a concurrent change raises BrandKitConflictError.

Caption packs use a single-retry-then-sanitize avoid-word policy: when the
generated copy contains an avoid word the pack is generated once more,
and if the words are still there they are stripped mechanically.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from brandkit.core.config import Settings, get_settings
from brandkit.core.logging import generation_logger, get_logger
from brandkit.models.brand_kit import BrandKit
from brandkit.repositories.brand_kit import BrandKitRepository
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
    CaptionPackOutput,
    CaptionPackOutputV2,
    KitMeta,
    VariantSpec,
)
from brandkit.services.campaign_brief import (
    merge_brief,
    normalize_campaign_brief,
    read_brief_patch,
)
from brandkit.services.caption_pack import (
    facet_has_avoid_words,
    merge_variant_output,
    normalize_caption_pack_v1,
    normalize_caption_pack_v2,
    output_has_avoid_words,
    output_version,
    sanitize_output,
)
from brandkit.services.generation import BrandKitGenerator, GenerationError
from brandkit.services.kit_document import (
    CAMPAIGN_NOTES_MAX,
    DEFAULT_CAMPAIGN_GOAL,
    DEFAULT_CAMPAIGN_PLATFORM,
    ITEM_CTA_MAX,
    ITEM_GOAL_MAX,
    ITEM_TOPIC_MAX,
    LEGACY_CAMPAIGN_ID,
    LEGACY_CAMPAIGN_NAME,
    PROFILE_AUDIENCE_MAX,
    PROFILE_DESCRIPTION_MAX,
    PROFILE_NAME_MAX,
    document_version,
    find_campaign,
    new_kit_document,
    read_asset_campaigns,
    read_brand_kit_palette,
    read_constraints,
    read_kit_document,
    read_meta,
    read_profile,
    read_tone,
    read_voice,
    save_campaigns,
    save_profile,
    save_voice,
    sort_campaigns,
)
from brandkit.utils.normalize import (
    isoformat_utc,
    read_object,
    trim_and_clamp,
    utc_now_iso,
)

logger = get_logger(__name__)

ACTION_MAX = 40

# (min, max) lengths for campaign context fields
CAMPAIGN_FIELD_BOUNDS: dict[str, tuple[int, int]] = {
    "name": (2, 60),
    "goal": (3, 80),
    "platform": (2, 40),
    "ctaStyle": (2, 30),
    "toneOverride": (2, 60),
}
CAMPAIGN_FIELD_LABELS = {
    "name": "Campaign name",
    "goal": "Campaign goal",
    "platform": "Platform",
    "ctaStyle": "CTA style",
    "toneOverride": "Tone override",
}

MIN_ALLOW_WORDS = 3

KIT_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


# =============================================================================
# ERRORS
# =============================================================================


class BrandKitServiceError(Exception):
    """Base exception for BrandKitService errors.

    `message` is safe to show to the user; `code` and `status_code` drive
    the HTTP error envelope.
    """

    code = "SERVICE_ERROR"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class BrandKitNotFoundError(BrandKitServiceError):
    """Raised when a kit does not exist or belongs to another owner."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class CampaignNotFoundError(BrandKitServiceError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message: str = "Campaign not found"):
        super().__init__(message)


class BrandKitValidationError(BrandKitServiceError):
    """Raised when request input is rejected before any work is done."""

    code = "VALIDATION_ERROR"
    status_code = 400


class BrandKitGenerationError(BrandKitServiceError):
    """Raised when generated output is missing or unusable."""

    code = "GENERATION_FAILED"
    status_code = 500


class BrandKitConflictError(BrandKitServiceError):
    """Raised when a version-checked write finds the document changed."""

    code = "CONFLICT"
    status_code = 409

    def __init__(self, kit_id: str, expected_version: int):
        self.kit_id = kit_id
        self.expected_version = expected_version
        super().__init__("Brand kit was changed by another request. Reload and try again.")


# =============================================================================
# RESULTS
# =============================================================================


@dataclass
class KitView:
    """A kit record with its document read through the readers."""

    id: str
    mode: str
    business: str
    vibe: str
    created_at: str
    updated_at: str
    palette: BrandKitPalette | None
    profile: BrandProfile
    voice: BrandVoice | None
    meta: KitMeta
    campaigns: list[AssetCampaign] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.palette is not None


@dataclass
class AssetActionResult:
    action: str
    campaign_id: str
    version: int
    item_id: str | None = None


@dataclass
class KitDiagnosis:
    id: str
    found: bool
    match: bool
    valid: bool
    reason: str


def _record_timestamp(kit: BrandKit) -> str:
    return isoformat_utc(kit.created_at)


def _read_id(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _read_campaign_field(
    body: dict[str, Any], key: str, required: bool
) -> str | None:
    """Trimmed campaign field within bounds; None when optional and blank."""
    lo, hi = CAMPAIGN_FIELD_BOUNDS[key]
    value = trim_and_clamp(body.get(key), hi)
    if not value and not required:
        return None
    if len(value) < lo:
        raise BrandKitValidationError(
            f"{CAMPAIGN_FIELD_LABELS[key]} must be {lo}-{hi} characters."
        )
    return value


class BrandKitService:
    """Handlers for brand kit, campaign and asset operations."""

    def __init__(
        self,
        session: AsyncSession,
        generator: BrandKitGenerator,
        settings: Settings | None = None,
    ) -> None:
        self._repository = BrandKitRepository(session)
        self._generator = generator
        self._settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Load / save
    # -------------------------------------------------------------------------

    def _validate_kit_id(self, kit_id: str) -> None:
        """Reject ids that cannot name a row; the id column is a UUID."""
        if not isinstance(kit_id, str) or not KIT_ID_PATTERN.match(kit_id):
            logger.warning(
                "Validation failed: invalid kit id format",
                extra={"kit_id": kit_id},
            )
            raise BrandKitNotFoundError()

    async def _load(self, kit_id: str, owner_id: str) -> tuple[BrandKit, dict[str, Any]]:
        self._validate_kit_id(kit_id)
        kit = await self._repository.get_by_id_and_owner(kit_id, owner_id)
        if kit is None:
            raise BrandKitNotFoundError()
        return kit, read_kit_document(kit.kit_json)

    async def _save(
        self, kit: BrandKit, document: dict[str, Any], section: str | None
    ) -> int:
        """Write the new document; returns its version."""
        expected = kit.version if self._settings.kit_write_version_check else None
        replaced = await self._repository.replace_document(
            kit.id, document, expected_version=expected
        )
        if not replaced:
            if expected is not None:
                raise BrandKitConflictError(kit.id, expected)
            raise BrandKitNotFoundError()

        version = document_version(document)
        generation_logger.document_written(kit.id, version, section)
        return version

    def _view(self, kit: BrandKit, document: dict[str, Any]) -> KitView:
        created_at = _record_timestamp(kit)
        return KitView(
            id=kit.id,
            mode=kit.mode,
            business=kit.business,
            vibe=kit.vibe,
            created_at=created_at,
            updated_at=isoformat_utc(kit.updated_at),
            palette=read_brand_kit_palette(document),
            profile=read_profile(document.get("profile")),
            voice=read_voice(document.get("voiceAi")),
            meta=read_meta(document.get("meta")),
            campaigns=read_asset_campaigns(document.get("assets"), created_at),
        )

    def _brand_context(self, kit: BrandKit, document: dict[str, Any]) -> dict[str, Any]:
        """Brand facts shared by every generation prompt."""
        palette = read_brand_kit_palette(document)
        profile = read_profile(document.get("profile"))
        voice = read_voice(document.get("voiceAi"))

        context: dict[str, Any] = {
            "mode": kit.mode,
            "business": kit.business,
            "vibe": kit.vibe,
            "visual": palette.to_document() if palette else {},
            "profile": {
                "name": profile.name or None,
                "audience": profile.audience or None,
                "description": profile.description or None,
                "tone": profile.tone.to_document(),
            },
            "constraints": profile.constraints.to_document(),
        }
        if voice is not None:
            context["voiceAi"] = {
                "voiceSummary": voice.voice_summary,
                "guidelines": voice.guidelines,
                "do": voice.do,
                "dont": voice.dont,
            }
        return context

    # -------------------------------------------------------------------------
    # Kits
    # -------------------------------------------------------------------------

    async def create_kit(
        self,
        owner_id: str,
        mode: str,
        business: str,
        vibe: str,
        primary: str | None = None,
        secondary: str | None = None,
    ) -> KitView:
        """Generate the palette for a new kit and store the first document."""
        mode = mode.strip()
        business = business.strip()
        vibe = vibe.strip()
        if not mode or not business or not vibe:
            raise BrandKitValidationError("mode, business and vibe are required.")

        context: dict[str, Any] = {"mode": mode, "business": business, "vibe": vibe}
        if primary:
            context["primary"] = primary
        if secondary:
            context["secondary"] = secondary

        try:
            raw = await self._generator.generate_palette(context)
        except GenerationError as e:
            raise BrandKitGenerationError("Could not generate a valid brand kit.") from e

        palette = read_brand_kit_palette(raw)
        if palette is None:
            generation_logger.invalid_output("palette", "Palette failed validation")
            raise BrandKitGenerationError("Could not generate a valid brand kit.")

        document = new_kit_document(palette, utc_now_iso())
        kit = await self._repository.create(
            owner_id=owner_id,
            mode=mode,
            business=business,
            vibe=vibe,
            kit_json=document,
        )
        return self._view(kit, document)

    async def list_kits(self, owner_id: str) -> list[KitView]:
        kits = await self._repository.list_by_owner(owner_id)
        return [self._view(kit, read_kit_document(kit.kit_json)) for kit in kits]

    async def get_kit(self, kit_id: str, owner_id: str) -> KitView:
        """Rendered kit. A kit whose palette cannot be read counts as missing."""
        kit, document = await self._load(kit_id, owner_id)
        view = self._view(kit, document)
        if not view.valid:
            logger.warning(
                "Brand kit document has no readable palette",
                extra={"kit_id": kit_id},
            )
            raise BrandKitNotFoundError()
        return view

    async def delete_kit(self, kit_id: str, owner_id: str) -> None:
        self._validate_kit_id(kit_id)
        deleted = await self._repository.delete_by_id_and_owner(kit_id, owner_id)
        if deleted == 0:
            raise BrandKitNotFoundError()

    async def diagnose_kit(self, kit_id: str, owner_id: str) -> KitDiagnosis:
        """Explain why a kit does or does not render for this owner."""
        kit = None
        if kit_id and KIT_ID_PATTERN.match(kit_id):
            kit = await self._repository.get_by_id(kit_id)
        found = kit is not None
        match = found and kit.owner_id == owner_id
        valid = found and read_brand_kit_palette(kit.kit_json) is not None

        if not kit_id:
            reason = "missing-id"
        elif not found:
            reason = "not-found"
        elif not match:
            reason = "user-mismatch"
        elif not valid:
            reason = "invalid-kit-json"
        else:
            reason = "ok"
        return KitDiagnosis(id=kit_id, found=found, match=match, valid=valid, reason=reason)

    # -------------------------------------------------------------------------
    # Profile, core, voice
    # -------------------------------------------------------------------------

    async def update_profile(
        self,
        kit_id: str,
        owner_id: str,
        fields: dict[str, Any],
    ) -> int:
        """Apply a profile and/or constraints edit.

        `fields` holds only the keys the client sent. Profile fields are
        merged over the stored profile; constraints are replaced.
        """
        has_profile = "profile" in fields
        has_constraints = "constraints" in fields
        if not has_profile and not has_constraints:
            raise BrandKitValidationError("Missing profile or constraints")

        profile_fields: dict[str, Any] | None = None
        if has_profile:
            raw_profile = read_object(fields["profile"])
            if raw_profile is None:
                raise BrandKitValidationError("Invalid profile")
            profile_fields = {
                "name": trim_and_clamp(raw_profile.get("name"), PROFILE_NAME_MAX),
                "audience": trim_and_clamp(raw_profile.get("audience"), PROFILE_AUDIENCE_MAX),
                "description": trim_and_clamp(
                    raw_profile.get("description"), PROFILE_DESCRIPTION_MAX
                ),
                "tone": read_tone(raw_profile.get("tone")).to_document(),
            }

        constraints: BrandConstraints | None = None
        if has_constraints:
            if read_object(fields["constraints"]) is None:
                raise BrandKitValidationError("Invalid constraints")
            constraints = read_constraints(fields["constraints"])

        kit, document = await self._load(kit_id, owner_id)
        next_document = save_profile(document, profile_fields, constraints, utc_now_iso())
        return await self._save(kit, next_document, "profile")

    async def autofill_core(self, kit_id: str, owner_id: str) -> int:
        """Fill profile and constraints from a generated brand core.

        Non-empty stored name, audience and description win, and so do
        stored allowWords once there are at least three of them. A generated
        core with fewer than three allowWords is rejected either way.
        """
        kit, document = await self._load(kit_id, owner_id)
        profile = read_profile(document.get("profile"))

        try:
            raw = await self._generator.generate_core(
                self._brand_context(kit, document), kit_id=kit.id
            )
        except GenerationError as e:
            raise BrandKitGenerationError("Could not generate brand core.") from e

        generated_profile = read_object(raw.get("profile"))
        generated_constraints = read_object(raw.get("constraints"))
        if generated_profile is None or generated_constraints is None:
            generation_logger.invalid_output("core", "Missing profile or constraints", kit.id)
            raise BrandKitGenerationError("Could not generate valid brand core.")

        core_constraints = read_constraints(generated_constraints)
        if len(core_constraints.allow_words) < MIN_ALLOW_WORDS:
            generation_logger.invalid_output("core", "Fewer than 3 allowWords", kit.id)
            raise BrandKitGenerationError("Could not generate valid brand core.")
        allow_words = (
            profile.constraints.allow_words
            if len(profile.constraints.allow_words) >= MIN_ALLOW_WORDS
            else core_constraints.allow_words
        )

        profile_fields = {
            "name": profile.name
            or trim_and_clamp(generated_profile.get("name"), PROFILE_NAME_MAX),
            "audience": profile.audience
            or trim_and_clamp(generated_profile.get("audience"), PROFILE_AUDIENCE_MAX),
            "description": profile.description
            or trim_and_clamp(generated_profile.get("description"), PROFILE_DESCRIPTION_MAX),
            "tone": read_tone(generated_profile.get("tone")).to_document(),
        }
        constraints = core_constraints.model_copy(update={"allow_words": allow_words})

        next_document = save_profile(document, profile_fields, constraints, utc_now_iso())
        return await self._save(kit, next_document, "profile")

    async def generate_voice(self, kit_id: str, owner_id: str) -> BrandVoice:
        kit, document = await self._load(kit_id, owner_id)

        try:
            raw = await self._generator.generate_voice(
                self._brand_context(kit, document), kit_id=kit.id
            )
        except GenerationError as e:
            raise BrandKitGenerationError("Could not generate voice suggestions.") from e

        voice = read_voice(raw)
        if voice is None:
            generation_logger.invalid_output("voice", "Voice failed validation", kit.id)
            raise BrandKitGenerationError("AI returned invalid voice suggestions.")

        await self._save(kit, save_voice(document, voice, utc_now_iso()), "voice")
        return voice

    # -------------------------------------------------------------------------
    # Campaigns and assets
    # -------------------------------------------------------------------------

    async def list_campaigns(self, kit_id: str, owner_id: str) -> list[AssetCampaign]:
        kit, document = await self._load(kit_id, owner_id)
        return read_asset_campaigns(document.get("assets"), _record_timestamp(kit))

    async def get_campaign(
        self, kit_id: str, owner_id: str, campaign_id: str
    ) -> AssetCampaign:
        campaign = find_campaign(await self.list_campaigns(kit_id, owner_id), campaign_id)
        if campaign is None:
            raise CampaignNotFoundError()
        return campaign

    async def handle_asset_action(
        self, kit_id: str, owner_id: str, body: dict[str, Any]
    ) -> AssetActionResult:
        """Dispatch POST /kits/{id}/assets on `action`, then bare `type`."""
        action = trim_and_clamp(body.get("action"), ACTION_MAX)
        if action == "create_campaign":
            return await self.create_campaign(kit_id, owner_id, body)
        if action == "update_campaign_context":
            return await self.update_campaign_context(kit_id, owner_id, body)
        if action == "variant_caption_pack":
            return await self.create_variant(kit_id, owner_id, body)
        if not action and body.get("type") == "caption_pack":
            return await self.generate_caption_pack(kit_id, owner_id, body)
        raise BrandKitValidationError("Invalid type")

    async def _save_campaigns(
        self,
        kit: BrandKit,
        document: dict[str, Any],
        campaigns: list[AssetCampaign],
        now: str,
    ) -> int:
        next_document = save_campaigns(document, sort_campaigns(campaigns), now)
        return await self._save(kit, next_document, "assets")

    async def _load_campaigns(
        self, kit_id: str, owner_id: str
    ) -> tuple[BrandKit, dict[str, Any], list[AssetCampaign]]:
        kit, document = await self._load(kit_id, owner_id)
        campaigns = read_asset_campaigns(document.get("assets"), _record_timestamp(kit))
        return kit, document, campaigns

    async def create_campaign(
        self, kit_id: str, owner_id: str, body: dict[str, Any]
    ) -> AssetActionResult:
        name = _read_campaign_field(body, "name", required=True)
        goal = _read_campaign_field(body, "goal", required=True)
        platform = _read_campaign_field(body, "platform", required=True)
        cta_style = _read_campaign_field(body, "ctaStyle", required=False)
        tone_override = _read_campaign_field(body, "toneOverride", required=False)
        notes = trim_and_clamp(body.get("notes"), CAMPAIGN_NOTES_MAX) or None

        kit, document, campaigns = await self._load_campaigns(kit_id, owner_id)
        now = utc_now_iso()
        campaign = AssetCampaign(
            id=str(uuid4()),
            name=name,
            goal=goal,
            platform=platform,
            cta_style=cta_style,
            tone_override=tone_override,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        version = await self._save_campaigns(kit, document, [campaign, *campaigns], now)
        logger.info(
            "Campaign created",
            extra={"kit_id": kit.id, "campaign_id": campaign.id, "version": version},
        )
        return AssetActionResult("create_campaign", campaign.id, version)

    async def update_campaign_context(
        self, kit_id: str, owner_id: str, body: dict[str, Any]
    ) -> AssetActionResult:
        campaign_id = _read_id(body.get("campaignId"))
        if not campaign_id:
            raise CampaignNotFoundError()
        goal = _read_campaign_field(body, "goal", required=True)
        platform = _read_campaign_field(body, "platform", required=True)
        cta_style = _read_campaign_field(body, "ctaStyle", required=False)
        tone_override = _read_campaign_field(body, "toneOverride", required=False)
        notes = trim_and_clamp(body.get("notes"), CAMPAIGN_NOTES_MAX) or None

        kit, document, campaigns = await self._load_campaigns(kit_id, owner_id)
        campaign = find_campaign(campaigns, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError()

        now = utc_now_iso()
        updated = campaign.model_copy(
            update={
                "goal": goal,
                "platform": platform,
                "cta_style": cta_style,
                "tone_override": tone_override,
                "notes": notes,
                "updated_at": now,
            }
        )
        version = await self._save_campaigns(
            kit, document, [updated if c.id == campaign_id else c for c in campaigns], now
        )
        return AssetActionResult("update_campaign_context", campaign_id, version)

    def _campaign_context(
        self, campaign: AssetCampaign, include_brief: bool = True
    ) -> dict[str, Any]:
        context: dict[str, Any] = {
            "name": campaign.name,
            "goal": campaign.goal,
            "platform": campaign.platform,
            "ctaStyle": campaign.cta_style,
            "toneOverride": campaign.tone_override,
            "notes": campaign.notes,
        }
        if include_brief and campaign.intelligence is not None:
            context["brief"] = campaign.intelligence.brief.to_document()
        return {key: value for key, value in context.items() if value is not None}

    async def _try_generate_pack(
        self,
        context: dict[str, Any],
        kit_id: str,
        allow_legacy: bool,
    ) -> CaptionPackOutput | None:
        """One generation attempt; None when the call or the shape fails."""
        try:
            raw = await self._generator.generate_caption_pack(context, kit_id=kit_id)
        except GenerationError:
            return None
        output = normalize_caption_pack_v2(raw)
        if output is None and allow_legacy:
            output = normalize_caption_pack_v1(raw)
        if output is None:
            generation_logger.invalid_output("caption_pack", "Pack failed validation", kit_id)
        return output

    async def _append_item(
        self,
        kit: BrandKit,
        document: dict[str, Any],
        campaigns: list[AssetCampaign],
        campaign: AssetCampaign,
        item: AssetItem,
        now: str,
    ) -> int:
        updated = campaign.model_copy(
            update={"items": [item, *campaign.items], "updated_at": now}
        )
        others = [c for c in campaigns if c.id != campaign.id]
        return await self._save_campaigns(kit, document, [updated, *others], now)

    async def generate_caption_pack(
        self, kit_id: str, owner_id: str, body: dict[str, Any]
    ) -> AssetActionResult:
        """Generate a root caption pack into a campaign.

        Without campaignId the newest campaign is used, or a General
        campaign is created when the kit has none. A campaignId that is
        not a non-blank string is rejected as "Campaign not found".
        """
        goal = trim_and_clamp(body.get("goal"), ITEM_GOAL_MAX)
        cta = trim_and_clamp(body.get("cta"), ITEM_CTA_MAX)
        topic = trim_and_clamp(body.get("topic"), ITEM_TOPIC_MAX) or None
        if not goal or not cta:
            raise BrandKitValidationError("goal and cta are required.")

        # A sent campaignId must name a campaign
        campaign_id = None
        if body.get("campaignId") is not None:
            campaign_id = _read_id(body["campaignId"])
            if not campaign_id:
                raise CampaignNotFoundError()

        kit, document, campaigns = await self._load_campaigns(kit_id, owner_id)
        now = utc_now_iso()

        if campaign_id:
            campaign = find_campaign(campaigns, campaign_id)
            if campaign is None:
                raise CampaignNotFoundError()
        elif campaigns:
            campaign = campaigns[0]
        else:
            campaign = AssetCampaign(
                id=LEGACY_CAMPAIGN_ID,
                name=LEGACY_CAMPAIGN_NAME,
                goal=DEFAULT_CAMPAIGN_GOAL,
                platform=DEFAULT_CAMPAIGN_PLATFORM,
                created_at=now,
                updated_at=now,
            )
            campaigns = [campaign]

        avoid_words = read_profile(document.get("profile")).constraints.avoid_words
        context = {
            **self._brand_context(kit, document),
            "campaign": self._campaign_context(campaign),
            "goal": goal,
            "cta": cta,
        }
        if topic:
            context["topic"] = topic

        start_time = time.monotonic()
        output = await self._try_generate_pack(context, kit.id, allow_legacy=True)
        if output is None:
            raise BrandKitGenerationError("Could not generate valid assets.")

        attempts = 1
        sanitized = False
        if output_has_avoid_words(output, avoid_words):
            generation_logger.policy_retry("caption_pack", kit.id)
            attempts = 2
            regenerated = await self._try_generate_pack(context, kit.id, allow_legacy=True)
            if regenerated is not None:
                output = regenerated
            if output_has_avoid_words(output, avoid_words):
                generation_logger.sanitized("caption_pack", kit.id)
                output = sanitize_output(output, avoid_words)
                sanitized = True

        generation_logger.generation_complete(
            "caption_pack",
            (time.monotonic() - start_time) * 1000,
            kit_id=kit.id,
            attempts=attempts,
            sanitized=sanitized,
        )

        item = AssetItem(
            id=str(uuid4()),
            output_version=output_version(output),
            created_at=now,
            input=CaptionPackInput(goal=goal, cta=cta, topic=topic),
            output=output,
        )
        version = await self._append_item(kit, document, campaigns, campaign, item, now)
        return AssetActionResult("caption_pack", campaign.id, version, item_id=item.id)

    async def _try_generate_variant(
        self,
        context: dict[str, Any],
        kit_id: str,
        parent: CaptionPackOutputV2,
        mode: str,
    ) -> CaptionPackOutputV2 | None:
        generated = await self._try_generate_pack(context, kit_id, allow_legacy=False)
        if not isinstance(generated, CaptionPackOutputV2):
            return None
        return merge_variant_output(parent, generated, mode)  # type: ignore[arg-type]

    async def create_variant(
        self, kit_id: str, owner_id: str, body: dict[str, Any]
    ) -> AssetActionResult:
        """Regenerate one facet of a root version-2 pack as a new item."""
        campaign_id = _read_id(body.get("campaignId"))
        parent_id = _read_id(body.get("parentItemId"))
        mode = body.get("mode")
        tone = body.get("tone") if body.get("tone") in VARIANT_TONES else "default"
        if mode not in VARIANT_MODES:
            raise BrandKitValidationError("Invalid variant mode.")
        if not campaign_id:
            raise CampaignNotFoundError()
        if not parent_id:
            raise BrandKitNotFoundError("Parent item not found")

        kit, document, campaigns = await self._load_campaigns(kit_id, owner_id)
        campaign = find_campaign(campaigns, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError()

        parent = next((item for item in campaign.items if item.id == parent_id), None)
        if parent is None:
            raise BrandKitNotFoundError("Parent item not found")
        if not parent.is_root or not isinstance(parent.output, CaptionPackOutputV2):
            raise BrandKitValidationError(
                "Variants can only be created from a root caption pack."
            )

        avoid_words = read_profile(document.get("profile")).constraints.avoid_words
        context = {
            **self._brand_context(kit, document),
            "campaign": self._campaign_context(campaign),
            "goal": parent.input.goal,
            "cta": parent.input.cta,
            "parentOutput": parent.output.to_document(),
            "variant": {"mode": mode, "tone": tone},
        }
        if parent.input.topic:
            context["topic"] = parent.input.topic

        start_time = time.monotonic()
        merged = await self._try_generate_variant(context, kit.id, parent.output, mode)
        if merged is None:
            raise BrandKitGenerationError("Could not generate valid assets.")

        attempts = 1
        sanitized = False
        if facet_has_avoid_words(merged, mode, avoid_words):
            generation_logger.policy_retry("caption_pack_variant", kit.id)
            attempts = 2
            regenerated = await self._try_generate_variant(context, kit.id, parent.output, mode)
            if regenerated is not None:
                merged = regenerated
            if facet_has_avoid_words(merged, mode, avoid_words):
                generation_logger.sanitized("caption_pack_variant", kit.id)
                merged = sanitize_output(merged, avoid_words, facet=mode)
                sanitized = True

        generation_logger.generation_complete(
            "caption_pack_variant",
            (time.monotonic() - start_time) * 1000,
            kit_id=kit.id,
            attempts=attempts,
            sanitized=sanitized,
        )

        now = utc_now_iso()
        item = AssetItem(
            id=str(uuid4()),
            output_version=2,
            created_at=now,
            parent_id=parent.id,
            variant=VariantSpec(mode=mode, tone=tone),
            input=parent.input,
            output=merged,
        )
        version = await self._append_item(kit, document, campaigns, campaign, item, now)
        return AssetActionResult("variant_caption_pack", campaign.id, version, item_id=item.id)

    # -------------------------------------------------------------------------
    # Campaign intelligence
    # -------------------------------------------------------------------------

    async def handle_intelligence_action(
        self,
        kit_id: str,
        owner_id: str,
        campaign_id: str,
        body: dict[str, Any],
    ) -> CampaignIntelligence:
        action = trim_and_clamp(body.get("action"), ACTION_MAX)
        if action == "generate_brief":
            return await self.generate_brief(kit_id, owner_id, campaign_id)
        if action == "update_brief":
            return await self.update_brief(kit_id, owner_id, campaign_id, body.get("brief"))
        raise BrandKitValidationError("Invalid action")

    async def _store_intelligence(
        self,
        kit: BrandKit,
        document: dict[str, Any],
        campaigns: list[AssetCampaign],
        campaign: AssetCampaign,
        intelligence: CampaignIntelligence,
    ) -> None:
        updated = campaign.model_copy(
            update={"intelligence": intelligence, "updated_at": intelligence.updated_at}
        )
        await self._save_campaigns(
            kit,
            document,
            [updated if c.id == campaign.id else c for c in campaigns],
            intelligence.updated_at,
        )

    async def generate_brief(
        self, kit_id: str, owner_id: str, campaign_id: str
    ) -> CampaignIntelligence:
        kit, document, campaigns = await self._load_campaigns(kit_id, owner_id)
        campaign = find_campaign(campaigns, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError()

        context = {
            **self._brand_context(kit, document),
            "campaign": self._campaign_context(campaign, include_brief=False),
        }

        try:
            raw = await self._generator.generate_brief(context, kit_id=kit.id)
        except GenerationError as e:
            raise BrandKitGenerationError("Could not update campaign intelligence.") from e

        brief = normalize_campaign_brief(raw)
        if brief is None:
            generation_logger.invalid_output("campaign_brief", "Brief failed validation", kit.id)
            raise BrandKitGenerationError("Could not update campaign intelligence.")

        intelligence = CampaignIntelligence(brief=brief, source="ai", updated_at=utc_now_iso())
        await self._store_intelligence(kit, document, campaigns, campaign, intelligence)
        return intelligence

    async def update_brief(
        self, kit_id: str, owner_id: str, campaign_id: str, brief_patch: Any
    ) -> CampaignIntelligence:
        """Merge a user patch onto the stored brief; incomplete results are rejected."""
        kit, document, campaigns = await self._load_campaigns(kit_id, owner_id)
        campaign = find_campaign(campaigns, campaign_id)
        if campaign is None:
            raise CampaignNotFoundError()

        patch_result = read_brief_patch(brief_patch)
        if not patch_result.ok:
            raise BrandKitValidationError(patch_result.error or "Invalid brief")

        existing = campaign.intelligence.brief if campaign.intelligence else None
        merged = merge_brief(existing, patch_result.patch or {})
        if merged is None:
            raise BrandKitValidationError("Brief is incomplete or invalid.")

        intelligence = CampaignIntelligence(brief=merged, source="user", updated_at=utc_now_iso())
        await self._store_intelligence(kit, document, campaigns, campaign, intelligence)
        return intelligence

