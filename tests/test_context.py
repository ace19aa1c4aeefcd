"""Tests for GenerationContext metadata normalisation."""
from __future__ import annotations

import pytest

from voxkit.tts.context import GenerationContext, to_snake_case


class TestSnakeCase:

    @pytest.mark.parametrize("key, expected", [
        ("speakingRate", "speaking_rate"),
        ("SpeakingRate", "speaking_rate"),
        ("XMLParser", "xml_parser"),
        ("chunk_index", "chunk_index"),
        ("voice - Style", "voice_style"),
        ("already-kebab", "already_kebab"),
        ("pitch2Shift", "pitch2_shift"),
    ])
    def test_conversion(self, key, expected):
        assert to_snake_case(key) == expected


class TestGenerationContext:

    def test_keys_normalised_on_construction(self):
        ctx = GenerationContext("Hello.", {"chunkIndex": 0, "Instruct": "whisper"})
        assert ctx.metadata == {"chunk_index": 0, "instruct": "whisper"}

    def test_later_key_wins_on_collision(self):
        ctx = GenerationContext("Hi.", {"chunkIndex": 1, "chunk_index": 2})
        assert ctx.metadata["chunk_index"] == 2

    def test_with_metadata_returns_new_context(self):
        ctx = GenerationContext("Hi.", {"a": 1})
        other = ctx.with_metadata(speakingRate=1.2)
        assert other.metadata == {"a": 1, "speaking_rate": 1.2}
        assert ctx.metadata == {"a": 1}
        assert other.phrase == "Hi."

    def test_is_frozen(self):
        ctx = GenerationContext("Hi.")
        with pytest.raises(AttributeError):
            ctx.phrase = "changed"
