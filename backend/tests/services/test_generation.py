"""Tests for the generation layer: JSON extraction and prompt wiring."""

import pytest

from brandkit.integrations.claude import CompletionResult
from brandkit.services.generation import (
    CAPTION_PACK_SYSTEM_PROMPT,
    PALETTE_SYSTEM_PROMPT,
    BrandKitGenerator,
    GenerationError,
    extract_json_object,
    fix_json_control_chars,
)
from tests.conftest import MockClaudeClient, palette_payload


class TestExtractJsonObject:
    def test_plain_object(self) -> None:
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self) -> None:
        assert extract_json_object('```json\n{"a": 1}\n```') == {"a": 1}

    def test_preamble_and_trailing_text(self) -> None:
        assert extract_json_object('Here you go:\n{"a": {"b": 2}}\nEnjoy!') == {"a": {"b": 2}}

    def test_raw_newline_inside_string(self) -> None:
        assert extract_json_object('{"text": "line one\nline two"}') == {
            "text": "line one\nline two"
        }

    @pytest.mark.parametrize("text", ["[1, 2, 3]", "no json here", "{broken", '"str"'])
    def test_non_objects_rejected(self, text: str) -> None:
        assert extract_json_object(text) is None

    def test_control_chars_outside_strings_untouched(self) -> None:
        assert fix_json_control_chars('{\n"a": "x\ty"\n}') == '{\n"a": "x\\ty"\n}'


class TestBrandKitGenerator:
    @pytest.mark.asyncio
    async def test_palette_uses_palette_prompt(
        self, generator: BrandKitGenerator, mock_claude: MockClaudeClient
    ) -> None:
        mock_claude.queue(palette_payload())

        result = await generator.generate_palette({"mode": "business", "business": "Bakery"})

        assert result["headlineFont"] == "Space Grotesk"
        assert mock_claude.calls[0]["system_prompt"] == PALETTE_SYSTEM_PROMPT
        assert mock_claude.calls[0]["temperature"] == 0.7
        assert mock_claude.context() == {"mode": "business", "business": "Bakery"}

    @pytest.mark.asyncio
    async def test_failed_completion_raises(
        self, generator: BrandKitGenerator, mock_claude: MockClaudeClient
    ) -> None:
        mock_claude.queue(CompletionResult(success=False, error="Request timed out"))

        with pytest.raises(GenerationError) as exc_info:
            await generator.generate_voice({}, kit_id="kit-1")

        assert exc_info.value.artifact == "voice"

    @pytest.mark.asyncio
    async def test_non_json_reply_raises(
        self, generator: BrandKitGenerator, mock_claude: MockClaudeClient
    ) -> None:
        mock_claude.queue("Sorry, I can't help with that.")

        with pytest.raises(GenerationError):
            await generator.generate_core({})

    @pytest.mark.asyncio
    async def test_variant_context_gets_instruction(
        self, generator: BrandKitGenerator, mock_claude: MockClaudeClient
    ) -> None:
        mock_claude.queue({"angle": "x"})

        await generator.generate_caption_pack(
            {"goal": "Launch", "variant": {"mode": "hooks_only", "tone": "bolder"}}
        )

        call = mock_claude.calls[0]
        assert call["system_prompt"] != CAPTION_PACK_SYSTEM_PROMPT
        assert call["system_prompt"].startswith(CAPTION_PACK_SYSTEM_PROMPT)
        variant = mock_claude.context()["variant"]
        assert variant["mode"] == "hooks_only"
        assert variant["instruction"]

    @pytest.mark.asyncio
    async def test_root_pack_uses_plain_prompt(
        self, generator: BrandKitGenerator, mock_claude: MockClaudeClient
    ) -> None:
        mock_claude.queue({"angle": "x"})

        await generator.generate_caption_pack({"goal": "Launch"})

        assert mock_claude.calls[0]["system_prompt"] == CAPTION_PACK_SYSTEM_PROMPT
