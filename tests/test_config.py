"""Tests for settings loading, env overrides and validation."""
from __future__ import annotations

import pytest

from voxkit.core.config import ConfigValidationError, Defaults, Settings, VoxkitConfig, load_settings


class TestLoadSettings:
    """YAML loading and environment overrides."""

    def test_missing_file_gives_defaults(self, tmp_path):
        """A missing settings file is not an error."""
        settings = load_settings(tmp_path / "nope.yaml")
        assert settings.raw == {}
        config = settings.get_config()
        assert config.model.variant == Defaults.MODEL_VARIANT
        assert config.chunking.max_words == 200
        assert config.voices.legacy_variant == "1.7b"

    def test_yaml_values_are_read(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "voices:\n  dir: /data/voices\nmodel:\n  variant: 0.6b\nchunking:\n  max_words: 50\n",
            encoding="utf-8",
        )
        config = load_settings(path).get_config()
        assert config.voices.dir == "/data/voices"
        assert config.model.variant == "0.6b"
        assert config.chunking.max_words == 50

    def test_non_mapping_yaml_rejected(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError):
            load_settings(path)

    def test_env_overrides(self, tmp_path, monkeypatch):
        """VOXKIT_* variables win over the file."""
        path = tmp_path / "settings.yaml"
        path.write_text("model:\n  variant: 1.7b\n  device: cuda\n", encoding="utf-8")
        monkeypatch.setenv("VOXKIT_MODEL_VARIANT", "0.6b")
        monkeypatch.setenv("VOXKIT_DEVICE", "cpu")
        monkeypatch.setenv("VOXKIT_VOICES_DIR", str(tmp_path / "v"))
        monkeypatch.setenv("VOXKIT_LANGUAGE", "de")

        settings = load_settings(path)
        assert settings.model_variant == "0.6b"
        assert settings.device == "cpu"
        assert settings.default_language == "de"
        assert settings.voices_dir == tmp_path / "v"

    def test_voxkit_config_env_selects_file(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yaml"
        path.write_text("chunking:\n  max_words: 7\n", encoding="utf-8")
        monkeypatch.setenv("VOXKIT_CONFIG", str(path))
        assert load_settings().get_config().chunking.max_words == 7


class TestValidation:
    """VoxkitConfig.from_settings bounds checks."""

    @pytest.mark.parametrize("raw", [
        {"chunking": {"max_words": 0}},
        {"cache": {"memory_max_items": -1}},
        {"audio": {"sample_rate": 0}},
    ])
    def test_non_positive_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            VoxkitConfig.from_settings(Settings(raw=raw))

    @pytest.mark.parametrize("raw", [
        {"model": {"variant": "7b"}},
        {"voices": {"legacy_variant": "3b"}},
        {"audio": {"format": "mp3"}},
    ])
    def test_unknown_choice_rejected(self, raw):
        with pytest.raises(ConfigValidationError):
            VoxkitConfig.from_settings(Settings(raw=raw))

    def test_variant_is_lowercased(self):
        config = VoxkitConfig.from_settings(Settings(raw={"model": {"variant": "0.6B"}}))
        assert config.model.variant == "0.6b"

    def test_voices_path_expands_user(self):
        config = VoxkitConfig.from_settings(Settings(raw={}))
        assert "~" not in str(config.voices.path)
