"""Shared fixtures: quiet logging, mock backends and voices directories."""
from __future__ import annotations

import os

# Before any voxkit import configures logging.
os.environ.setdefault("VOXKIT_LOG_LEVEL", "1")
os.environ.setdefault("VOXKIT_NO_COLOR", "1")

from unittest.mock import MagicMock

import pytest

from voxkit.core.config import Settings
from voxkit.tts import chunker
from voxkit.tts.backend import BackendCapabilities, BaseVoiceBackend
from voxkit.utils.audio import build_wav

SAMPLE_WAV = build_wav([100, -100, 200, -200] * 8)


def make_backend() -> MagicMock:
    """
    Backend double.

    synthesize() returns a distinct 8-sample WAV per call (sample value =
    call number), design_voice() a fixed sample and extract_clone_prompt()
    ``b"prompt-<variant>"``.
    """
    backend = MagicMock(spec=BaseVoiceBackend)
    backend.name = "mock"
    backend.sample_rate = 24000
    backend.capabilities = BackendCapabilities(preset_speakers=True, voice_design=True, clone_extraction=True)
    backend.is_loaded.return_value = False

    calls = {"n": 0}

    def _synth(context, **kwargs):
        calls["n"] += 1
        return build_wav([calls["n"]] * 8, 24000)

    backend.synthesize.side_effect = _synth
    backend.design_voice.return_value = SAMPLE_WAV
    backend.extract_clone_prompt.side_effect = lambda audio, description, variant, transcript=None: f"prompt-{variant}".encode()
    return backend


@pytest.fixture(autouse=True)
def untrained_punkt(monkeypatch):
    """Sentence splitting must not depend on NLTK data installed on the machine."""
    monkeypatch.setattr(chunker, "_trained_tokenizer", lambda language: None)
    chunker.sentence_tokenizer.cache_clear()
    yield
    chunker.sentence_tokenizer.cache_clear()


@pytest.fixture
def backend() -> MagicMock:
    return make_backend()


@pytest.fixture
def voices_dir(tmp_path):
    d = tmp_path / "voices"
    d.mkdir()
    return d


@pytest.fixture
def settings(voices_dir) -> Settings:
    return Settings(raw={
        "voices": {"dir": str(voices_dir), "legacy_variant": "1.7b"},
        "model": {"engine": "qwen3tts", "variant": "1.7b", "device": "cpu", "language": "en"},
        "chunking": {"max_words": 200},
        "cache": {"memory_max_items": 16},
        "audio": {"sample_rate": 24000, "format": "wav"},
    })
