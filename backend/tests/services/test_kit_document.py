"""Tests for kit document readers and writers.

Covers:
- Palette, profile, voice and meta readers on malformed storage
- Campaign reading in the current and the pre-campaign shape
- Item ordering, duplicate ids and dangling variants
- Writers bumping meta.version without mutating their input
"""

import copy
import json
from typing import Any

import pytest

from brandkit.schemas.brand_kit import CaptionPackOutputV1, CaptionPackOutputV2
from brandkit.services.kit_document import (
    DEFAULT_CAMPAIGN_GOAL,
    DEFAULT_CAMPAIGN_PLATFORM,
    LEGACY_CAMPAIGN_ID,
    read_asset_campaigns,
    read_brand_kit_palette,
    read_campaign,
    read_campaign_intelligence,
    read_constraints,
    read_meta,
    read_profile,
    read_voice,
    save_campaigns,
    save_profile,
    save_voice,
    update_meta,
)
from tests.conftest import caption_pack_payload, palette_payload, voice_payload

FALLBACK = "2026-01-01T00:00:00.000Z"


def _item(item_id: str, created_at: str, **extra: Any) -> dict[str, Any]:
    return {
        "id": item_id,
        "type": "caption_pack",
        "outputVersion": 2,
        "createdAt": created_at,
        "input": {"goal": "Launch", "cta": "Order now"},
        "output": caption_pack_payload(),
        **extra,
    }


def _campaign(campaign_id: str, updated_at: str, **extra: Any) -> dict[str, Any]:
    return {
        "id": campaign_id,
        "name": f"Campaign {campaign_id}",
        "goal": "Launch",
        "platform": "TikTok",
        "createdAt": "2026-02-01T00:00:00.000Z",
        "updatedAt": updated_at,
        "items": [],
        **extra,
    }


class TestReadPalette:
    def test_uppercases_hexes(self) -> None:
        palette = read_brand_kit_palette(palette_payload())

        assert palette is not None
        assert palette.primary == "#7C3AED"
        assert palette.headline_font == "Space Grotesk"

    def test_three_neutrals_is_invalid(self) -> None:
        document = palette_payload(neutrals=["#111111", "#222222", "#333333"])
        assert read_brand_kit_palette(document) is None

    def test_bad_color_is_invalid(self) -> None:
        assert read_brand_kit_palette(palette_payload(accent="orange")) is None

    def test_blank_font_is_invalid(self) -> None:
        assert read_brand_kit_palette(palette_payload(bodyFont="  ")) is None

    def test_non_object_is_invalid(self) -> None:
        assert read_brand_kit_palette(["#111111"]) is None


class TestReadProfile:
    def test_defaults_for_missing_profile(self) -> None:
        profile = read_profile(None)

        assert profile.name == ""
        assert profile.tone.bold == 50
        assert profile.constraints.humor == 20
        assert profile.constraints.allow_words == []

    def test_sliders_are_clamped(self) -> None:
        profile = read_profile({"tone": {"bold": 140, "playful": "high", "formal": 12.5}})

        assert profile.tone.bold == 100
        assert profile.tone.playful == 50
        assert profile.tone.formal == 13

    def test_huge_json_integers_are_clamped(self) -> None:
        huge = "1" + "0" * 400
        raw = json.loads(
            f'{{"tone": {{"bold": {huge}}}, "constraints": {{"humor": -{huge}}}}}'
        )

        profile = read_profile(raw)

        assert profile.tone.bold == 100
        assert profile.constraints.humor == 0

    def test_constraint_words_deduped(self) -> None:
        constraints = read_constraints({"avoidWords": ["Cheap", "cheap", " deal "]})
        assert constraints.avoid_words == ["Cheap", "deal"]


class TestReadVoice:
    def test_valid_voice(self) -> None:
        voice = read_voice(voice_payload())

        assert voice is not None
        assert voice.voice_summary == "Warm, local and a little cheeky."
        assert len(voice.taglines) == 3

    def test_two_taglines_is_invalid(self) -> None:
        payload = voice_payload()
        payload["taglines"] = payload["taglines"][:2]
        assert read_voice(payload) is None

    def test_missing_summary_is_invalid(self) -> None:
        payload = voice_payload()
        del payload["voiceSummary"]
        assert read_voice(payload) is None


class TestReadMeta:
    def test_missing_meta_is_version_one(self) -> None:
        assert read_meta(None).version == 1

    def test_float_version_is_floored(self) -> None:
        assert read_meta({"version": 4.7}).version == 4

    def test_invalid_versions_fall_back(self) -> None:
        assert read_meta({"version": -2}).version == 1
        assert read_meta({"version": "9"}).version == 1
        assert read_meta({"version": True}).version == 1

    def test_version_outside_int4_falls_back(self) -> None:
        assert read_meta({"version": 10**400}).version == 1
        assert read_meta({"version": 2**31 - 1}).version == 1
        assert read_meta({"version": 2**31 - 2}).version == 2**31 - 2


class TestReadCampaigns:
    def test_current_shape_sorted_by_updated_at(self) -> None:
        assets = {
            "campaigns": [
                _campaign("old", "2026-02-02T00:00:00.000Z"),
                _campaign("new", "2026-02-05T00:00:00.000Z"),
            ]
        }

        campaigns = read_asset_campaigns(assets, FALLBACK)

        assert [campaign.id for campaign in campaigns] == ["new", "old"]

    def test_legacy_campaign_gets_default_goal_and_platform(self) -> None:
        campaign = read_campaign({"id": "c1", "name": "Spring"}, FALLBACK)

        assert campaign is not None
        assert campaign.goal == DEFAULT_CAMPAIGN_GOAL
        assert campaign.platform == DEFAULT_CAMPAIGN_PLATFORM
        assert campaign.created_at == FALLBACK
        assert campaign.updated_at == FALLBACK

    def test_malformed_campaigns_skipped_and_duplicates_dropped(self) -> None:
        assets = {
            "campaigns": [
                _campaign("a", "2026-02-03T00:00:00.000Z"),
                {"id": "", "name": "no id"},
                "not an object",
                _campaign("a", "2026-02-09T00:00:00.000Z", name="Duplicate"),
            ]
        }

        campaigns = read_asset_campaigns(assets, FALLBACK)

        assert len(campaigns) == 1
        assert campaigns[0].name == "Campaign a"

    def test_pre_campaign_items_become_general_campaign(self) -> None:
        assets = {"items": [_item("i1", "2026-02-01T00:00:00.000Z")]}

        campaigns = read_asset_campaigns(assets, FALLBACK)

        assert len(campaigns) == 1
        assert campaigns[0].id == LEGACY_CAMPAIGN_ID
        assert campaigns[0].name == "General"
        assert campaigns[0].created_at == FALLBACK
        assert [item.id for item in campaigns[0].items] == ["i1"]

    def test_pre_campaign_shape_without_items_is_empty(self) -> None:
        assert read_asset_campaigns({"items": []}, FALLBACK) == []
        assert read_asset_campaigns(None, FALLBACK) == []

    def test_incomplete_intelligence_is_dropped(self) -> None:
        campaign = read_campaign(
            _campaign(
                "c1",
                "2026-02-02T00:00:00.000Z",
                intelligence={"brief": {"angle": "only an angle"}, "updatedAt": FALLBACK},
            ),
            FALLBACK,
        )

        assert campaign is not None
        assert campaign.intelligence is None


class TestReadItems:
    def test_items_sorted_newest_first(self) -> None:
        campaign = read_campaign(
            _campaign(
                "c1",
                "2026-02-02T00:00:00.000Z",
                items=[
                    _item("older", "2026-02-01T00:00:00.000Z"),
                    _item("newer", "2026-02-03T00:00:00.000Z"),
                ],
            ),
            FALLBACK,
        )

        assert campaign is not None
        assert [item.id for item in campaign.items] == ["newer", "older"]

    def test_dangling_variant_is_demoted_to_root(self) -> None:
        campaign = read_campaign(
            _campaign(
                "c1",
                "2026-02-02T00:00:00.000Z",
                items=[
                    _item(
                        "orphan",
                        "2026-02-01T00:00:00.000Z",
                        parentId="missing",
                        variant={"mode": "hooks_only", "tone": "bolder"},
                    )
                ],
            ),
            FALLBACK,
        )

        assert campaign is not None
        orphan = campaign.items[0]
        assert orphan.is_root
        assert orphan.variant is None

    def test_variant_of_existing_root_kept(self) -> None:
        campaign = read_campaign(
            _campaign(
                "c1",
                "2026-02-02T00:00:00.000Z",
                items=[
                    _item("root", "2026-02-01T00:00:00.000Z"),
                    _item(
                        "child",
                        "2026-02-02T00:00:00.000Z",
                        parentId="root",
                        variant={"mode": "ctas_only", "tone": "unknown"},
                    ),
                ],
            ),
            FALLBACK,
        )

        assert campaign is not None
        child = campaign.items[0]
        assert child.parent_id == "root"
        assert child.variant is not None
        assert child.variant.tone == "default"

    def test_legacy_output_read_as_version_one(self) -> None:
        legacy = {
            "id": "v1",
            "type": "caption_pack",
            "createdAt": "not a date",
            "input": {"goal": "Launch", "cta": "Buy"},
            "output": {"hooks": ["a", "b", "c"], "captions": ["d", "e", "f"]},
        }

        campaign = read_campaign(
            _campaign("c1", "2026-02-02T00:00:00.000Z", items=[legacy]), FALLBACK
        )

        assert campaign is not None
        item = campaign.items[0]
        assert item.output_version == 1
        assert isinstance(item.output, CaptionPackOutputV1)
        assert item.created_at == "2026-02-01T00:00:00.000Z"

    def test_unreadable_items_skipped(self) -> None:
        broken = _item("broken", "2026-02-01T00:00:00.000Z")
        broken["output"] = {"angle": "x", "hooks": [], "captions": []}
        wrong_type = _item("image", "2026-02-01T00:00:00.000Z", type="image")

        campaign = read_campaign(
            _campaign(
                "c1",
                "2026-02-02T00:00:00.000Z",
                items=[broken, wrong_type, _item("ok", "2026-02-01T00:00:00.000Z")],
            ),
            FALLBACK,
        )

        assert campaign is not None
        assert [item.id for item in campaign.items] == ["ok"]
        assert isinstance(campaign.items[0].output, CaptionPackOutputV2)


class TestWriters:
    def test_update_meta_bumps_version_and_section_stamp(self) -> None:
        meta = update_meta({"meta": {"version": 3}}, "2026-03-01T00:00:00.000Z", "voice")

        assert meta["version"] == 4
        assert meta["updatedAt"] == "2026-03-01T00:00:00.000Z"
        assert meta["voiceUpdatedAt"] == "2026-03-01T00:00:00.000Z"

    def test_save_profile_merges_and_does_not_mutate(self) -> None:
        document = {
            **palette_payload(),
            "profile": {"name": "Old", "audience": "Everyone"},
            "meta": {"version": 2},
        }
        snapshot = copy.deepcopy(document)

        updated = save_profile(
            document, {"name": "New"}, read_constraints({"humor": 90}), FALLBACK
        )

        assert document == snapshot
        assert updated["profile"]["name"] == "New"
        assert updated["profile"]["audience"] == "Everyone"
        assert updated["profile"]["constraints"]["humor"] == 90
        assert updated["meta"]["version"] == 3
        assert updated["meta"]["profileUpdatedAt"] == FALLBACK

    def test_save_campaigns_replaces_legacy_items_shape(self) -> None:
        document = {"assets": {"items": [_item("i1", "2026-02-01T00:00:00.000Z")]}}
        campaigns = read_asset_campaigns(document["assets"], FALLBACK)

        updated = save_campaigns(document, campaigns, FALLBACK)

        assert set(updated["assets"]) == {"campaigns"}
        assert updated["assets"]["campaigns"][0]["id"] == LEGACY_CAMPAIGN_ID
        assert updated["meta"]["version"] == 2
        assert updated["meta"]["assetsUpdatedAt"] == FALLBACK

    def test_save_voice_uses_camel_case(self) -> None:
        voice = read_voice(voice_payload())
        assert voice is not None

        updated = save_voice({}, voice, FALLBACK)

        assert updated["voiceAi"]["sampleLines"] == voice_payload()["sampleLines"]
        assert updated["meta"]["voiceUpdatedAt"] == FALLBACK


JUNK_VALUES: list[Any] = [
    None,
    0,
    -1.5,
    True,
    "",
    "junk",
    [],
    [None, 1, "x"],
    10**400,
    {"tone": {"bold": 10**400}, "constraints": {"humor": -(10**400)}, "version": 10**400},
    {},
    {"items": "nope", "campaigns": {"id": 1}},
    {"campaigns": [None, {"id": ""}, {"id": "c", "items": [{"output": 7}]}]},
]


class TestReadersAreTotal:
    @pytest.mark.parametrize("value", JUNK_VALUES)
    def test_junk_never_raises(self, value: Any) -> None:
        read_brand_kit_palette(value)
        read_profile(value)
        read_voice(value)
        read_meta(value)
        read_campaign_intelligence(value)
        assert isinstance(read_asset_campaigns(value, FALLBACK), list)

    def test_reading_written_campaigns_is_idempotent(self) -> None:
        document = {
            "assets": {
                "campaigns": [
                    _campaign(
                        "c1",
                        "2026-03-01T00:00:00.000Z",
                        items=[
                            _item("root", "2026-03-01T00:00:00.000Z"),
                            _item("orphan", "2026-03-02T00:00:00.000Z", parentId="gone"),
                        ],
                    ),
                    {"id": "legacy", "name": "Old", "items": []},
                ]
            }
        }
        first = read_asset_campaigns(document["assets"], FALLBACK)

        rewritten = save_campaigns(copy.deepcopy(document), first, FALLBACK)
        second = read_asset_campaigns(rewritten["assets"], FALLBACK)

        assert second == first

    def test_reading_profile_twice_is_stable(self) -> None:
        raw = {"name": "  Crumb  ", "tone": {"playful": 140}, "constraints": {"avoidWords": ["X", "x"]}}
        first = read_profile(raw)

        assert read_profile(first.to_document()) == first
