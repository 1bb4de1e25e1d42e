"""Caption pack model: reading, normalization, avoid-word policy, variants.

Caption packs exist in two stored shapes:
- version 1 (legacy): {hooks: [str x3], captions: [str x3], notes?}
- version 2: {angle, hooks: [{style, text} x3], captions: [{text, ctaLine} x3]}

New packs are always version 2. Version 1 packs are still read and
rendered but never used as variant parents.

Avoid-word policy is a case-insensitive substring match against the
brand's constraints.avoidWords. Callers regenerate once on a match and
then fall back to sanitize_output, which strips the words mechanically.
"""

import re
from typing import Any

from pydantic import ValidationError

from brandkit.schemas.brand_kit import (
    HOOK_STYLES,
    CaptionLine,
    CaptionPackOutput,
    CaptionPackOutputV1,
    CaptionPackOutputV2,
    HookLine,
    VariantMode,
)
from brandkit.utils.normalize import read_object, read_string_array_exact, trim_and_clamp

PACK_SIZE = 3

V1_HOOK_MAX = 90
V1_CAPTION_MAX = 500
V1_NOTES_MAX = 280

V2_ANGLE_MAX = 140
V2_HOOK_MAX = 120
V2_CAPTION_MAX = 500
V2_CTA_LINE_MAX = 90

FALLBACK_HOOKS = (
    "Clear value for the right audience.",
    "Consistent message with stronger impact.",
    "A fresh angle that still fits your brand.",
)
FALLBACK_CAPTIONS = (
    "Practical caption aligned with your brand voice and CTA.",
    "Audience-focused caption that keeps your message clear.",
    "Conversion-ready caption tailored to your brand direction.",
)
FALLBACK_CTA_LINES = (
    "Learn more today.",
    "See how it works.",
    "Take the next step.",
)
FALLBACK_ANGLE = "A focused message built for the right audience."

# Last resort when avoid words eat the fallback too. More single-character
# entries than an avoid list can hold, so one always survives.
NEUTRAL_FALLBACKS = ("...", "-", "*", "~", "+", "=", "#", "/", "|")

_MULTI_SPACE = re.compile(r"\s{2,}")
_SPACE_BEFORE_PUNCTUATION = re.compile(r"\s+([,.!?;:])")


# =============================================================================
# NORMALIZERS
# =============================================================================


def _read_hook_style(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for style in HOOK_STYLES:
        if style.lower() == wanted:
            return style
    return None


def normalize_caption_pack_v1(value: Any) -> CaptionPackOutputV1 | None:
    """Validate a legacy flat caption pack."""
    candidate = read_object(value)
    if candidate is None:
        return None

    hooks = read_string_array_exact(candidate.get("hooks"), PACK_SIZE, V1_HOOK_MAX)
    captions = read_string_array_exact(candidate.get("captions"), PACK_SIZE, V1_CAPTION_MAX)
    if hooks is None or captions is None:
        return None

    notes = trim_and_clamp(candidate.get("notes"), V1_NOTES_MAX)
    try:
        return CaptionPackOutputV1(hooks=hooks, captions=captions, notes=notes or None)
    except ValidationError:
        return None


def normalize_caption_pack_v2(value: Any) -> CaptionPackOutputV2 | None:
    """Validate a version-2 caption pack (generator output or stored)."""
    candidate = read_object(value)
    if candidate is None:
        return None

    angle = trim_and_clamp(candidate.get("angle"), V2_ANGLE_MAX)
    raw_hooks = candidate.get("hooks")
    raw_captions = candidate.get("captions")
    if not angle or not isinstance(raw_hooks, list) or not isinstance(raw_captions, list):
        return None
    if len(raw_hooks) != PACK_SIZE or len(raw_captions) != PACK_SIZE:
        return None

    hooks: list[HookLine] = []
    for entry in raw_hooks:
        hook = read_object(entry)
        if hook is None:
            return None
        style = _read_hook_style(hook.get("style"))
        text = trim_and_clamp(hook.get("text"), V2_HOOK_MAX)
        if style is None or not text:
            return None
        hooks.append(HookLine(style=style, text=text))

    captions: list[CaptionLine] = []
    for entry in raw_captions:
        caption = read_object(entry)
        if caption is None:
            return None
        text = trim_and_clamp(caption.get("text"), V2_CAPTION_MAX)
        cta_line = trim_and_clamp(caption.get("ctaLine"), V2_CTA_LINE_MAX)
        if not text or not cta_line:
            return None
        captions.append(CaptionLine(text=text, cta_line=cta_line))

    try:
        return CaptionPackOutputV2(angle=angle, hooks=hooks, captions=captions)
    except ValidationError:
        return None


def _has_v2_structure(output: dict[str, Any]) -> bool:
    if isinstance(output.get("angle"), str):
        return True
    for key in ("hooks", "captions"):
        entries = output.get(key)
        if isinstance(entries, list) and any(isinstance(entry, dict) for entry in entries):
            return True
    return False


def read_caption_pack(item: Any) -> CaptionPackOutput | None:
    """Reconstruct a stored item's output in whichever shape it was saved.

    Version 2 is chosen when the item says outputVersion == 2 or the output
    carries v2 structure (an angle string, or object entries in hooks or
    captions). The other shape is tried as a fallback before giving up.
    """
    candidate = read_object(item)
    if candidate is None:
        return None
    output = read_object(candidate.get("output"))
    if output is None:
        return None

    if candidate.get("outputVersion") == 2 or _has_v2_structure(output):
        return normalize_caption_pack_v2(output) or normalize_caption_pack_v1(output)
    return normalize_caption_pack_v1(output) or normalize_caption_pack_v2(output)


def output_version(output: CaptionPackOutput) -> int:
    return 2 if isinstance(output, CaptionPackOutputV2) else 1


# =============================================================================
# AVOID-WORD POLICY
# =============================================================================


def contains_avoid_word(text: str, avoid_words: list[str]) -> bool:
    lowered = text.lower()
    return any(word.strip() and word.strip().lower() in lowered for word in avoid_words)


def collect_output_texts(output: CaptionPackOutput) -> list[str]:
    """Every generated text field of a pack."""
    if isinstance(output, CaptionPackOutputV1):
        texts = [*output.hooks, *output.captions]
        if output.notes:
            texts.append(output.notes)
        return texts

    texts = [output.angle]
    texts.extend(hook.text for hook in output.hooks)
    for caption in output.captions:
        texts.extend((caption.text, caption.cta_line))
    return texts


def collect_facet_texts(output: CaptionPackOutputV2, mode: VariantMode) -> list[str]:
    """Text fields a variant of the given mode regenerates."""
    if mode == "hooks_only":
        return [hook.text for hook in output.hooks]
    if mode == "ctas_only":
        return [caption.cta_line for caption in output.captions]
    texts: list[str] = []
    for caption in output.captions:
        texts.extend((caption.text, caption.cta_line))
    return texts


def output_has_avoid_words(output: CaptionPackOutput, avoid_words: list[str]) -> bool:
    if not avoid_words:
        return False
    return any(contains_avoid_word(text, avoid_words) for text in collect_output_texts(output))


def facet_has_avoid_words(
    output: CaptionPackOutputV2, mode: VariantMode, avoid_words: list[str]
) -> bool:
    if not avoid_words:
        return False
    return any(
        contains_avoid_word(text, avoid_words) for text in collect_facet_texts(output, mode)
    )


def _strip_avoid_words(value: str, avoid_words: list[str], max_len: int) -> str:
    result = value
    # Repeat until stable: removing one word can join fragments into another
    while True:
        previous = result
        for word in avoid_words:
            term = word.strip()
            if term:
                result = re.sub(re.escape(term), "", result, flags=re.IGNORECASE)
        result = _MULTI_SPACE.sub(" ", result)
        result = _SPACE_BEFORE_PUNCTUATION.sub(r"\1", result)
        result = result.strip()[:max_len].strip()
        if result == previous:
            return result


def sanitize_text(value: str, avoid_words: list[str], max_len: int, fallback: str) -> str:
    """Remove every avoid-word occurrence from one field.

    Fields that end up empty get the fallback sentence (itself stripped of
    avoid words when needed), or a neutral punctuation token when nothing
    of the fallback survives.
    """
    cleaned = _strip_avoid_words(value, avoid_words, max_len)
    if cleaned:
        return cleaned
    safe_fallback = _strip_avoid_words(fallback, avoid_words, max_len)
    if safe_fallback:
        return safe_fallback
    return next(
        (token for token in NEUTRAL_FALLBACKS if not contains_avoid_word(token, avoid_words)),
        NEUTRAL_FALLBACKS[0],
    )


def _sanitize_hooks(
    output: CaptionPackOutputV2, avoid_words: list[str]
) -> list[HookLine]:
    return [
        HookLine(
            style=hook.style,
            text=sanitize_text(hook.text, avoid_words, V2_HOOK_MAX, FALLBACK_HOOKS[index]),
        )
        for index, hook in enumerate(output.hooks)
    ]


def _sanitize_captions(
    output: CaptionPackOutputV2, avoid_words: list[str], texts: bool, cta_lines: bool
) -> list[CaptionLine]:
    captions: list[CaptionLine] = []
    for index, caption in enumerate(output.captions):
        text = caption.text
        cta_line = caption.cta_line
        if texts:
            text = sanitize_text(text, avoid_words, V2_CAPTION_MAX, FALLBACK_CAPTIONS[index])
        if cta_lines:
            cta_line = sanitize_text(
                cta_line, avoid_words, V2_CTA_LINE_MAX, FALLBACK_CTA_LINES[index]
            )
        captions.append(CaptionLine(text=text, cta_line=cta_line))
    return captions


def sanitize_output(
    output: CaptionPackOutput,
    avoid_words: list[str],
    facet: VariantMode | None = None,
) -> CaptionPackOutput:
    """Strip avoid words from a pack, field by field.

    With `facet` set (variant packs) only that facet's fields are touched;
    the rest was copied from an already compliant parent.
    """
    if isinstance(output, CaptionPackOutputV1):
        notes = output.notes
        if notes:
            notes = _strip_avoid_words(notes, avoid_words, V1_NOTES_MAX) or None
        return CaptionPackOutputV1(
            hooks=[
                sanitize_text(text, avoid_words, V1_HOOK_MAX, FALLBACK_HOOKS[index])
                for index, text in enumerate(output.hooks)
            ],
            captions=[
                sanitize_text(text, avoid_words, V1_CAPTION_MAX, FALLBACK_CAPTIONS[index])
                for index, text in enumerate(output.captions)
            ],
            notes=notes,
        )

    if facet == "hooks_only":
        return output.model_copy(update={"hooks": _sanitize_hooks(output, avoid_words)})
    if facet == "captions_only":
        return output.model_copy(
            update={"captions": _sanitize_captions(output, avoid_words, True, True)}
        )
    if facet == "ctas_only":
        return output.model_copy(
            update={"captions": _sanitize_captions(output, avoid_words, False, True)}
        )

    return CaptionPackOutputV2(
        angle=sanitize_text(output.angle, avoid_words, V2_ANGLE_MAX, FALLBACK_ANGLE),
        hooks=_sanitize_hooks(output, avoid_words),
        captions=_sanitize_captions(output, avoid_words, True, True),
    )


# =============================================================================
# VARIANTS
# =============================================================================


def merge_variant_output(
    parent: CaptionPackOutputV2,
    generated: CaptionPackOutputV2,
    mode: VariantMode,
) -> CaptionPackOutputV2:
    """Take only the `mode` facet from the generated pack.

    hooks_only replaces hooks, captions_only replaces whole captions,
    ctas_only replaces each caption's ctaLine and keeps its text. Every
    other field is the parent's.
    """
    if mode == "hooks_only":
        return parent.model_copy(update={"hooks": list(generated.hooks)})
    if mode == "captions_only":
        return parent.model_copy(update={"captions": list(generated.captions)})
    captions = [
        CaptionLine(text=own.text, cta_line=new.cta_line)
        for own, new in zip(parent.captions, generated.captions, strict=True)
    ]
    return parent.model_copy(update={"captions": captions})
