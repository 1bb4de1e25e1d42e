"""Campaign intelligence brief validation.

A brief is only ever stored complete. Users edit it through partial
patches, which are validated field by field, shallow-merged onto the
stored brief and then run through the complete-brief validator. A merge
that fails that gate is rejected as a whole.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from brandkit.schemas.brand_kit import CampaignBrief, ObjectionPair
from brandkit.utils.normalize import (
    normalize_words,
    read_object,
    read_string_array_exact,
    read_string_list,
    trim_and_clamp,
)

ANGLE_MAX = 180
PROMISE_MAX = 200
PROOF_POINT_MAX = 180
PILLAR_MAX = 140
DO_DONT_MAX = 120
DO_DONT_MIN_COUNT = 3
DO_DONT_MAX_COUNT = 6
OBJECTION_MAX = 180
RESPONSE_MAX = 220
OBJECTIONS_MIN = 2
OBJECTIONS_MAX = 3

BRIEF_FIELDS = ("angle", "promise", "proofPoints", "objections", "pillars", "do", "dont")


@dataclass
class BriefPatchResult:
    """Outcome of reading a user patch: either `patch` or `error` is set."""

    patch: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.patch is not None


def _read_objections(value: Any) -> list[dict[str, str]]:
    """Usable objection/response rows, at most three."""
    rows: list[dict[str, str]] = []
    for entry in value:
        pair = read_object(entry)
        if pair is None:
            continue
        objection = trim_and_clamp(pair.get("objection"), OBJECTION_MAX)
        response = trim_and_clamp(pair.get("response"), RESPONSE_MAX)
        if objection and response:
            rows.append({"objection": objection, "response": response})
    return rows


def _build_brief(
    angle: str,
    promise: str,
    proof_points: list[str],
    objections: list[dict[str, str]],
    pillars: list[str],
    do_list: list[str],
    dont_list: list[str],
) -> CampaignBrief | None:
    try:
        return CampaignBrief(
            angle=angle,
            promise=promise,
            proof_points=proof_points,
            objections=[ObjectionPair(**row) for row in objections],
            pillars=pillars,
            do=do_list,
            dont=dont_list,
        )
    except ValidationError:
        return None


def normalize_campaign_brief(value: Any) -> CampaignBrief | None:
    """Validate a freshly generated brief.

    Stricter than the merge gate: do/dont lists over six entries and more
    than three objections are rejected instead of cut down.
    """
    candidate = read_object(value)
    if candidate is None:
        return None

    angle = trim_and_clamp(candidate.get("angle"), ANGLE_MAX)
    promise = trim_and_clamp(candidate.get("promise"), PROMISE_MAX)
    proof_points = read_string_list(candidate.get("proofPoints"), 3, 3, PROOF_POINT_MAX)
    pillars = read_string_list(candidate.get("pillars"), 3, 3, PILLAR_MAX)
    do_list = read_string_list(
        candidate.get("do"), DO_DONT_MIN_COUNT, DO_DONT_MAX_COUNT, DO_DONT_MAX
    )
    dont_list = read_string_list(
        candidate.get("dont"), DO_DONT_MIN_COUNT, DO_DONT_MAX_COUNT, DO_DONT_MAX
    )
    if not angle or not promise or not proof_points or not pillars:
        return None
    if not do_list or not dont_list:
        return None

    raw_objections = candidate.get("objections")
    if not isinstance(raw_objections, list):
        return None
    objections = _read_objections(raw_objections)
    if not OBJECTIONS_MIN <= len(objections) <= OBJECTIONS_MAX:
        return None

    return _build_brief(angle, promise, proof_points, objections, pillars, do_list, dont_list)


def validate_complete_brief(value: Any) -> CampaignBrief | None:
    """Completeness gate for stored and merged briefs."""
    candidate = read_object(value)
    if candidate is None:
        return None

    angle = trim_and_clamp(candidate.get("angle"), ANGLE_MAX)
    promise = trim_and_clamp(candidate.get("promise"), PROMISE_MAX)
    proof_points = read_string_array_exact(candidate.get("proofPoints"), 3, PROOF_POINT_MAX)
    pillars = read_string_array_exact(candidate.get("pillars"), 3, PILLAR_MAX)
    do_list = normalize_words(candidate.get("do"), DO_DONT_MAX, DO_DONT_MAX_COUNT)
    dont_list = normalize_words(candidate.get("dont"), DO_DONT_MAX, DO_DONT_MAX_COUNT)

    if not angle or not promise or proof_points is None or pillars is None:
        return None
    if len(do_list) < DO_DONT_MIN_COUNT or len(dont_list) < DO_DONT_MIN_COUNT:
        return None

    raw_objections = candidate.get("objections")
    if not isinstance(raw_objections, list):
        return None
    objections = _read_objections(raw_objections)[:OBJECTIONS_MAX]
    if len(objections) < OBJECTIONS_MIN:
        return None

    return _build_brief(angle, promise, proof_points, objections, pillars, do_list, dont_list)


def read_brief_patch(value: Any) -> BriefPatchResult:
    """Validate the keys present in a user patch.

    Absent keys are left alone; a present key must be valid on its own.
    The patch uses stored (camelCase) keys so it can be merged directly.
    """
    brief = read_object(value)
    if brief is None:
        return BriefPatchResult(error="brief is required.")

    patch: dict[str, Any] = {}

    if "angle" in brief:
        angle = trim_and_clamp(brief["angle"], ANGLE_MAX)
        if not angle:
            return BriefPatchResult(error="angle is required.")
        patch["angle"] = angle

    if "promise" in brief:
        promise = trim_and_clamp(brief["promise"], PROMISE_MAX)
        if not promise:
            return BriefPatchResult(error="promise is required.")
        patch["promise"] = promise

    if "proofPoints" in brief:
        proof_points = read_string_array_exact(brief["proofPoints"], 3, PROOF_POINT_MAX)
        if proof_points is None:
            return BriefPatchResult(error="proofPoints must contain exactly 3 items.")
        patch["proofPoints"] = proof_points

    if "pillars" in brief:
        pillars = read_string_array_exact(brief["pillars"], 3, PILLAR_MAX)
        if pillars is None:
            return BriefPatchResult(error="pillars must contain exactly 3 items.")
        patch["pillars"] = pillars

    if "objections" in brief:
        if not isinstance(brief["objections"], list):
            return BriefPatchResult(error="objections must be an array.")
        objections = _read_objections(brief["objections"])[:OBJECTIONS_MAX]
        if len(objections) < OBJECTIONS_MIN:
            return BriefPatchResult(error="objections must contain 2 to 3 rows.")
        patch["objections"] = objections

    for key in ("do", "dont"):
        if key in brief:
            words = normalize_words(brief[key], DO_DONT_MAX, DO_DONT_MAX_COUNT)
            if len(words) < DO_DONT_MIN_COUNT:
                return BriefPatchResult(error=f"{key} must contain at least 3 items.")
            patch[key] = words

    if not patch:
        return BriefPatchResult(error="brief patch is empty.")
    return BriefPatchResult(patch=patch)


def merge_brief(existing: CampaignBrief | None, patch: dict[str, Any]) -> CampaignBrief | None:
    """Shallow-merge a validated patch and re-run the completeness gate."""
    base = existing.to_document() if existing else {}
    return validate_complete_brief({**base, **patch})
