"""Brand kit generation prompts and response parsing.

BrandKitGenerator owns one system prompt per generated artifact. The
structured context is sent as indented JSON in the user message and the
reply must be a single JSON object. Shapes are NOT validated here: every
caller re-validates the returned dict with the document normalizers,
because the model's output is never trusted.
"""

import json
import time
from typing import Any

from brandkit.core.config import get_settings
from brandkit.core.logging import generation_logger, get_logger
from brandkit.integrations.claude import ClaudeClient, CompletionResult

logger = get_logger(__name__)

# Hexes the palette prompt steers away from unless the user supplied them
DEFAULT_PALETTE_HEXES = (
    "#3B82F6",
    "#2563EB",
    "#1D4ED8",
    "#10B981",
    "#22C55E",
    "#F59E0B",
    "#111827",
    "#0F172A",
)

PALETTE_SYSTEM_PROMPT = (
    "You are a senior brand designer for modern SaaS marketing.\n"
    "Return ONLY valid JSON (no markdown, no commentary).\n"
    "Rules:\n"
    "1) Avoid generic default palettes. DO NOT use these hexes unless the user "
    f"explicitly provided them: {', '.join(DEFAULT_PALETTE_HEXES)}.\n"
    "2) Palette must feel specific to the requested vibe + business.\n"
    "3) Ensure good contrast: secondary must be much darker or much lighter than primary.\n"
    "4) Neutrals must be 4 values from light to dark or dark to light, consistent "
    "with the vibe.\n"
    "Output schema keys EXACTLY: primary, secondary, accent, neutrals (array of 4 hex), "
    "headlineFont, bodyFont.\n"
    "Fonts: pick headlineFont and bodyFont from modern web-safe Google fonts "
    "(e.g., Inter, Manrope, Plus Jakarta Sans, Space Grotesk, Sora, DM Sans, IBM Plex Sans)."
)

CORE_SYSTEM_PROMPT = """You are a senior brand strategist creating practical, specific brand operating rules.
Return ONLY valid JSON (no markdown, no commentary).
Keep outputs concise and non-generic.
Rules:
1) name: short and brandable.
2) audience: specific and concrete.
3) description: 1-2 sentences.
4) tone and constraints sliders: integers 0..100.
5) allowWords length must be 3..6.
6) avoidWords length must be 0..6.
7) Avoid profanity and unsafe/offensive language.
JSON schema keys EXACTLY:
{
  "profile": {
    "name": string,
    "audience": string,
    "description": string,
    "tone": { "bold": number, "playful": number, "formal": number, "emotional": number }
  },
  "constraints": {
    "formality": number,
    "humor": number,
    "intensity": number,
    "allowWords": string[],
    "avoidWords": string[]
  }
}"""

VOICE_SYSTEM_PROMPT = """You are a senior brand strategist for modern marketing teams.
Generate short, clear, marketing-friendly copy.
No profanity, no edgy/offensive language, no unsafe claims.
Return ONLY valid JSON (no markdown, no commentary).
JSON schema keys EXACTLY:
{
  "taglines": string[3],
  "voiceSummary": string,
  "guidelines": string[3..6],
  "do": string[3..6],
  "dont": string[3..6],
  "sampleLines": string[3]
}
Keep each line concise and usable in social and landing-page copy."""

CAPTION_PACK_SYSTEM_PROMPT = """You are a senior social copywriter creating brand-aware caption assets.
Return ONLY valid JSON with no markdown or prose.
Write concise, practical hooks and captions aligned to the brand input.
Respect brand constraints and avoid prohibited language.
JSON schema keys EXACTLY:
{
  "angle": string,
  "hooks": [
    { "style": "Curiosity"|"Pain"|"Proof", "text": string },
    { "style": "Curiosity"|"Pain"|"Proof", "text": string },
    { "style": "Curiosity"|"Pain"|"Proof", "text": string }
  ],
  "captions": [
    { "text": string, "ctaLine": string },
    { "text": string, "ctaLine": string },
    { "text": string, "ctaLine": string }
  ]
}
Rules:
- angle: 1 concise sentence, <= 140 chars.
- hooks: exactly 3, each style must be one of Curiosity/Pain/Proof and text <= 120 chars.
- captions: exactly 3, each text <= 500 chars and ctaLine <= 90 chars.
- captions should be CTA-ready and platform-safe.
- respect avoidWords strictly: never include any avoidWords terms.
- use allowWords naturally when it fits; do not force repetition.
- adapt structure and length to platform context (shorter lines for fast-scroll platforms, more context for professional channels).
- adjust energy and punch based on goal and campaign.toneOverride when provided.
- avoid generic filler copy and repetition."""

VARIANT_INSTRUCTIONS = {
    "hooks_only": "Rewrite ONLY the three hooks. Keep the parent's angle and captions in mind.",
    "captions_only": "Rewrite ONLY the three captions (text and ctaLine). Keep the parent's angle and hooks in mind.",
    "ctas_only": "Rewrite ONLY the three ctaLine values. Caption texts stay as in the parent.",
}

VARIANT_TONE_INSTRUCTIONS = {
    "softer": "Make the rewritten copy gentler and lower-pressure than the parent.",
    "default": "Keep the same energy as the parent.",
    "bolder": "Make the rewritten copy punchier and more confident than the parent.",
}

VARIANT_SYSTEM_SUFFIX = """
Variant mode:
- The input contains "variant" (mode, tone, instruction) and "parentOutput".
- Return the FULL JSON object in the schema above; fields outside the variant mode are ignored.
- The rewritten fields must be clearly different from parentOutput."""

BRIEF_SYSTEM_PROMPT = """You are a senior campaign strategist producing a concise campaign brief.
Return ONLY valid JSON, no markdown and no extra prose.
Use non-generic language and align tightly with the provided brand + campaign context.
Respect avoidWords strictly and prefer allowWords naturally.
Keep copy concise and practical for execution.
JSON schema keys EXACTLY:
{
  "angle": string,
  "promise": string,
  "proofPoints": [string, string, string],
  "objections": [
    { "objection": string, "response": string },
    { "objection": string, "response": string }
  ],
  "pillars": [string, string, string],
  "do": string[],
  "dont": string[]
}
Rules:
- proofPoints must be exactly 3.
- pillars must be exactly 3.
- objections must be 2 to 3 items.
- do and dont must be 3 to 6 items each.
- keep each line short and execution-ready."""


class GenerationError(Exception):
    """Raised when the model call fails or its reply is not a JSON object."""

    def __init__(self, artifact: str, reason: str):
        self.artifact = artifact
        self.reason = reason
        super().__init__(f"{artifact} generation failed: {reason}")


def fix_json_control_chars(json_text: str) -> str:
    """Escape literal newlines, tabs and other control chars inside JSON strings."""
    result = []
    in_string = False
    escape_next = False

    for char in json_text:
        if escape_next:
            result.append(char)
            escape_next = False
            continue
        if char == "\\" and in_string:
            result.append(char)
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            result.append(char)
            continue
        if in_string and ord(char) < 32:
            escaped = {"\n": "\\n", "\r": "\\r", "\t": "\\t"}.get(char)
            result.append(escaped or f"\\u{ord(char):04x}")
        else:
            result.append(char)

    return "".join(result)


def extract_json_object(response_text: str) -> dict[str, Any] | None:
    """Parse a JSON object out of a model reply.

    Handles markdown code fences and preamble text. Returns None when no
    JSON object can be parsed (arrays and scalars count as failures).
    """
    json_text = response_text.strip()

    if json_text.startswith("```"):
        lines = json_text.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        json_text = "\n".join(lines).strip()

    if not json_text.startswith("{"):
        first_brace = json_text.find("{")
        last_brace = json_text.rfind("}")
        if first_brace != -1 and last_brace > first_brace:
            json_text = json_text[first_brace : last_brace + 1]

    try:
        parsed = json.loads(fix_json_control_chars(json_text))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


class BrandKitGenerator:
    """Generates brand kit artifacts through Claude."""

    def __init__(self, claude: ClaudeClient, temperature: float | None = None) -> None:
        self._claude = claude
        self._temperature = (
            temperature if temperature is not None else get_settings().claude_temperature
        )

    async def _generate(
        self,
        artifact: str,
        system_prompt: str,
        context: dict[str, Any],
        kit_id: str | None = None,
    ) -> dict[str, Any]:
        generation_logger.generation_start(artifact, kit_id=kit_id)
        start_time = time.monotonic()

        result: CompletionResult = await self._claude.complete(
            user_prompt=json.dumps(context, indent=2, ensure_ascii=False),
            system_prompt=system_prompt,
            temperature=self._temperature,
        )
        if not result.success or result.text is None:
            reason = result.error or "Empty response"
            generation_logger.invalid_output(artifact, reason, kit_id=kit_id)
            raise GenerationError(artifact, reason)

        parsed = extract_json_object(result.text)
        if parsed is None:
            generation_logger.invalid_output(artifact, "Response is not a JSON object", kit_id)
            raise GenerationError(artifact, "Response is not a JSON object")

        logger.debug(
            "Generation response parsed",
            extra={
                "artifact": artifact,
                "kit_id": kit_id,
                "keys": sorted(parsed.keys()),
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return parsed

    async def generate_palette(self, context: dict[str, Any]) -> dict[str, Any]:
        """Colors and fonts for a new kit from mode, business and vibe."""
        return await self._generate("palette", PALETTE_SYSTEM_PROMPT, context)

    async def generate_core(
        self, context: dict[str, Any], kit_id: str | None = None
    ) -> dict[str, Any]:
        return await self._generate("core", CORE_SYSTEM_PROMPT, context, kit_id)

    async def generate_voice(
        self, context: dict[str, Any], kit_id: str | None = None
    ) -> dict[str, Any]:
        return await self._generate("voice", VOICE_SYSTEM_PROMPT, context, kit_id)

    async def generate_caption_pack(
        self, context: dict[str, Any], kit_id: str | None = None
    ) -> dict[str, Any]:
        """One version-2 caption pack.

        Variant requests carry `variant` and `parentOutput` in the context;
        the mode and tone instructions are added to the context here.
        """
        variant = context.get("variant")
        if isinstance(variant, dict):
            mode = variant.get("mode")
            tone = variant.get("tone", "default")
            context = {
                **context,
                "variant": {
                    **variant,
                    "instruction": " ".join(
                        filter(
                            None,
                            (
                                VARIANT_INSTRUCTIONS.get(mode),
                                VARIANT_TONE_INSTRUCTIONS.get(tone),
                            ),
                        )
                    ),
                },
            }
            return await self._generate(
                "caption_pack_variant",
                CAPTION_PACK_SYSTEM_PROMPT + VARIANT_SYSTEM_SUFFIX,
                context,
                kit_id,
            )
        return await self._generate("caption_pack", CAPTION_PACK_SYSTEM_PROMPT, context, kit_id)

    async def generate_brief(
        self, context: dict[str, Any], kit_id: str | None = None
    ) -> dict[str, Any]:
        return await self._generate("campaign_brief", BRIEF_SYSTEM_PROMPT, context, kit_id)
