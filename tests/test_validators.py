"""Tests for voice name, text and description validation."""
from __future__ import annotations

import pytest

from voxkit.core.errors import ErrorCode, InvalidInput
from voxkit.voices.validators import validate_description, validate_text, validate_voice_name


class TestVoiceName:

    def test_trimmed(self):
        assert validate_voice_name("  alice ") == "alice"

    @pytest.mark.parametrize("name", [None, "", "   ", "a/b", "a\\b", ".hidden", "..", "x" * 101, "nul\x00"])
    def test_rejected(self, name):
        with pytest.raises(InvalidInput) as exc_info:
            validate_voice_name(name)
        assert exc_info.value.code == ErrorCode.INVALID_INPUT
        assert exc_info.value.details == {"field": "name"}

    def test_unicode_allowed(self):
        assert validate_voice_name("Zoë 2") == "Zoë 2"

    @pytest.mark.parametrize("name", ["bob-0.6b", "bob-1.7b", "bob-1.7B", "narrator-2b"])
    def test_variant_suffix_rejected(self, name):
        # "bob-0.6b.blob" is already the 0.6b blob of voice "bob".
        with pytest.raises(InvalidInput, match="variant suffix"):
            validate_voice_name(name)

    @pytest.mark.parametrize("name", ["bob-2", "bob-0.6", "b-side", "bob 0.6b", "0.6b"])
    def test_similar_names_allowed(self, name):
        assert validate_voice_name(name) == name


class TestText:

    def test_whitespace_rejected(self):
        with pytest.raises(InvalidInput):
            validate_text("   ")

    def test_too_long_rejected(self):
        with pytest.raises(InvalidInput, match="too long"):
            validate_text("a" * 100_001)

    def test_returned_unchanged(self):
        assert validate_text(" Hello. ") == " Hello. "


class TestDescription:

    def test_required(self):
        with pytest.raises(InvalidInput):
            validate_description(None)

    def test_trimmed(self):
        assert validate_description(" calm voice ") == "calm voice"
