"""
Tests for the Qwen3-TTS backend adapter and the backend factory.

No model is loaded: the model object is a MagicMock and prompt
serialisation is stubbed on the instance.
"""
from __future__ import annotations

import sys
from unittest.mock import MagicMock

import numpy as np
import pytest

from voxkit.core.errors import ModelUnavailable
from voxkit.tts.backend import DESIGN_SAMPLE_TEXT, get_backend, reset_backend
from voxkit.tts.context import GenerationContext
from voxkit.tts.engines import helpers
from voxkit.tts.engines.helpers import resolve_device, waveforms_to_wav_bytes
from voxkit.tts.engines.qwen3tts_engine import Qwen3TTSBackend
from voxkit.utils.audio import build_wav, parse_wav


@pytest.fixture
def model():
    m = MagicMock()
    wave = [np.full(240, 0.5, dtype=np.float32)]
    m.generate_custom_voice.return_value = (wave, 24000)
    m.generate_voice_clone.return_value = (wave, 24000)
    m.generate_voice_design.return_value = (wave, 24000)
    m.create_voice_clone_prompt.return_value = ["prompt-item"]
    return m


@pytest.fixture
def qwen(settings, model):
    backend = Qwen3TTSBackend(settings)
    backend._model = MagicMock(return_value=model)
    backend._serialize_prompt = lambda prompt: repr(prompt).encode()
    backend._deserialize_prompt = lambda blob: blob.decode()
    return backend


class TestQwen3TTSBackend:

    def test_preset_speaker_uses_custom_voice_model(self, qwen, model):
        wav = qwen.synthesize(GenerationContext("Hello."), speaker="ono_anna", language="ja", variant="1.7b")

        qwen._model.assert_called_once_with("Qwen/Qwen3-TTS-12Hz-1.7B-CustomVoice")
        model.generate_custom_voice.assert_called_once_with(
            text="Hello.", language="japanese", speaker="ono_anna", instruct=None,
        )
        samples, rate = parse_wav(wav)
        assert rate == 24000
        assert len(samples) == 240

    def test_clone_prompt_uses_variant_base_model(self, qwen, model):
        qwen.synthesize(GenerationContext("Hi."), clone_prompt=b"['p']", language="en", variant="0.6b")
        qwen._model.assert_called_once_with("Qwen/Qwen3-TTS-12Hz-0.6B-Base")
        model.generate_voice_clone.assert_called_once_with(
            text="Hi.", language="english", voice_clone_prompt="['p']",
        )

    def test_instruct_from_metadata(self, qwen, model):
        qwen.synthesize(GenerationContext("Hi.", {"Instruct": "whisper"}), speaker="ryan", language="en", variant="1.7b")
        assert model.generate_custom_voice.call_args.kwargs["instruct"] == "whisper"

    def test_requires_prompt_or_speaker(self, qwen):
        with pytest.raises(ValueError):
            qwen.synthesize(GenerationContext("Hi."), language="en", variant="1.7b")

    def test_unknown_language_falls_back_to_auto(self, qwen, model):
        qwen.synthesize(GenerationContext("Hi."), speaker="ryan", language="tlh", variant="1.7b")
        assert model.generate_custom_voice.call_args.kwargs["language"] == "auto"

    def test_design_voice(self, qwen, model):
        wav = qwen.design_voice("A calm voice", "en")
        qwen._model.assert_called_once_with("Qwen/Qwen3-TTS-12Hz-1.7B-VoiceDesign")
        model.generate_voice_design.assert_called_once_with(
            text=DESIGN_SAMPLE_TEXT, language="english", instruct="A calm voice",
        )
        assert wav[:4] == b"RIFF"

    def test_extract_with_transcript(self, qwen, model):
        blob = qwen.extract_clone_prompt(build_wav([0, 1000, -1000] * 100, 24000), "d", "1.7b",
                                         transcript=DESIGN_SAMPLE_TEXT)
        assert blob == b"['prompt-item']"
        kwargs = model.create_voice_clone_prompt.call_args.kwargs
        assert kwargs["ref_text"] == DESIGN_SAMPLE_TEXT
        assert kwargs["x_vector_only_mode"] is False
        wav, sr = kwargs["ref_audio"]
        assert sr == 24000
        assert len(wav) == 300

    def test_extract_without_transcript_is_embedding_only(self, qwen, model):
        qwen.extract_clone_prompt(build_wav([0] * 10, 24000), None, "0.6b")
        kwargs = model.create_voice_clone_prompt.call_args.kwargs
        assert kwargs["ref_text"] is None
        assert kwargs["x_vector_only_mode"] is True

    def test_missing_dependencies(self, settings, monkeypatch):
        monkeypatch.setitem(sys.modules, "qwen_tts", None)
        with pytest.raises(ModelUnavailable):
            Qwen3TTSBackend(settings).load("1.7b")


class TestHelpers:

    def test_resolve_device(self, monkeypatch):
        monkeypatch.setattr(helpers, "cuda_available", lambda: False)
        assert resolve_device("auto") == "cpu"
        assert resolve_device("cuda") == "cpu"
        assert resolve_device("mps") == "mps"
        monkeypatch.setattr(helpers, "cuda_available", lambda: True)
        assert resolve_device("") == "cuda"

    def test_waveforms_joined(self):
        wav = waveforms_to_wav_bytes([np.zeros(10, dtype=np.float32), np.zeros(5, dtype=np.float32)], 16000)
        samples, rate = parse_wav(wav)
        assert rate == 16000
        assert len(samples) == 15

    def test_int16_rescaled(self):
        samples, _ = parse_wav(waveforms_to_wav_bytes([np.array([16384, -16384], dtype=np.int16)], 24000))
        assert samples.tolist() == [16383, -16383]

    def test_overshoot_is_peak_normalised(self):
        samples, _ = parse_wav(waveforms_to_wav_bytes([np.array([2.0, -1.0], dtype=np.float32)], 24000))
        assert samples.tolist() == [32767, -16383]

    def test_empty_output_raises(self):
        with pytest.raises(RuntimeError):
            waveforms_to_wav_bytes([], 24000)


class TestBackendFactory:

    def test_get_backend_is_shared(self, settings):
        reset_backend()
        try:
            first = get_backend(settings)
            assert isinstance(first, Qwen3TTSBackend)
            assert get_backend(settings) is first
        finally:
            reset_backend()

    def test_unknown_engine(self, settings):
        settings.raw["model"]["engine"] = "nope"
        reset_backend()
        try:
            with pytest.raises(ValueError):
                get_backend(settings)
        finally:
            reset_backend()
