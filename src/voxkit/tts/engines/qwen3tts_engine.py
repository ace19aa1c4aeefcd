"""
Qwen3-TTS backend.

Three checkpoints are involved:
    - Base (0.6B or 1.7B): clone-prompt extraction and cloned synthesis;
      one per model variant
    - CustomVoice (1.7B): fixed preset speakers
    - VoiceDesign (1.7B): renders a sample from a text description

Clone prompts are the model's prompt items serialised with ``torch.save``;
they only load back into the same Base variant.

Configuration:
    settings.yaml:
        model:
          engine: qwen3tts
          variant: "1.7b"
          device: auto
          dtype: bfloat16

Installation:
    pip install "voxkit[qwen3tts]"
"""
from __future__ import annotations

import io
import threading
from typing import Any, Dict, Optional

from voxkit.core.config import Settings
from voxkit.core.errors import ModelUnavailable
from voxkit.core.logging import info, verbose, warn
from voxkit.core.metrics import metrics
from voxkit.tts.backend import DESIGN_SAMPLE_TEXT, BackendCapabilities, BaseVoiceBackend
from voxkit.tts.context import GenerationContext
from voxkit.tts.engines.helpers import resolve_device, waveforms_to_wav_bytes
from voxkit.tts.variants import CUSTOM_VOICE_MODEL, VOICE_DESIGN_MODEL, base_model_id
from voxkit.utils.audio import wav_bytes_to_float32
from voxkit.utils.timeit import timeit

SUPPORTED_LANGUAGES = {
    "auto", "chinese", "english", "french", "german", "italian",
    "japanese", "korean", "portuguese", "russian", "spanish",
}

LANGUAGE_ALIASES = {
    "en": "english", "zh": "chinese", "fr": "french", "de": "german",
    "it": "italian", "ja": "japanese", "ko": "korean", "pt": "portuguese",
    "ru": "russian", "es": "spanish",
}


class Qwen3TTSBackend(BaseVoiceBackend):
    name = "qwen3tts"
    sample_rate = 24000
    capabilities = BackendCapabilities(
        preset_speakers=True,
        voice_design=True,
        clone_extraction=True,
    )

    def __init__(self, settings: Settings):
        super().__init__(settings)
        config = settings.get_config()
        self._device_pref = config.model.device
        self._dtype_name = config.model.dtype
        self._models: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def _import_model_class(self):
        try:
            # torch first: qwen_tts relies on it being initialised
            import torch  # noqa: F401
            from qwen_tts import Qwen3TTSModel
        except ImportError as exc:
            raise ModelUnavailable(
                "Qwen3-TTS dependencies missing. Install with: pip install 'voxkit[qwen3tts]'"
            ) from exc
        return Qwen3TTSModel

    def _model(self, model_id: str):
        model = self._models.get(model_id)
        if model is not None:
            return model

        with self._lock:
            model = self._models.get(model_id)
            if model is not None:
                return model

            model_cls = self._import_model_class()
            import torch

            dtype = {
                "bfloat16": torch.bfloat16,
                "float16": torch.float16,
                "float32": torch.float32,
            }.get(self._dtype_name, torch.bfloat16)
            device = resolve_device(self._device_pref, self.logger)

            info(self.logger, "loading_model", model=model_id, device=device)
            with timeit("load_model") as t:
                try:
                    model = model_cls.from_pretrained(model_id, device_map=device, dtype=dtype)
                except (OSError, RuntimeError, ValueError) as exc:
                    raise ModelUnavailable(f"{model_id}: {exc}") from exc
            info(self.logger, "model_loaded", model=model_id, seconds=round(t.seconds, 2))

            self._models[model_id] = model
            self._loaded = True
            metrics.set_backend_loaded(self.name, True)
            return model

    def load(self, variant: str) -> None:
        """Load the Base checkpoint for ``variant``."""
        self._model(base_model_id(variant))

    def _language(self, language: Optional[str]) -> str:
        raw = (language or "auto").lower()
        lang = LANGUAGE_ALIASES.get(raw, raw)
        if lang not in SUPPORTED_LANGUAGES:
            warn(self.logger, "unsupported_language", language=language, fallback="auto")
            lang = "auto"
        return lang

    def _wav(self, wavs: Any, sr: Optional[int]) -> bytes:
        if sr:
            self.sample_rate = int(sr)
        return waveforms_to_wav_bytes(list(wavs), self.sample_rate)

    def _serialize_prompt(self, prompt: Any) -> bytes:
        """Clone prompt objects to an opaque blob via ``torch.save``."""
        import torch
        buf = io.BytesIO()
        torch.save(prompt, buf)
        return buf.getvalue()

    def _deserialize_prompt(self, blob: bytes) -> Any:
        import torch
        # Prompt items are dataclasses around tensors, not plain state dicts.
        return torch.load(io.BytesIO(blob), map_location="cpu", weights_only=False)

    def synthesize(
        self,
        context: GenerationContext,
        *,
        clone_prompt: Optional[bytes] = None,
        speaker: Optional[str] = None,
        language: str,
        variant: str,
    ) -> bytes:
        lang = self._language(language)
        instruct = context.metadata.get("instruct")

        if speaker is not None:
            model = self._model(CUSTOM_VOICE_MODEL)
            with timeit("synth") as t:
                wavs, sr = model.generate_custom_voice(
                    text=context.phrase, language=lang, speaker=speaker, instruct=instruct,
                )
        elif clone_prompt is not None:
            model = self._model(base_model_id(variant))
            prompt = self._deserialize_prompt(clone_prompt)
            with timeit("synth") as t:
                wavs, sr = model.generate_voice_clone(
                    text=context.phrase, language=lang, voice_clone_prompt=prompt,
                )
        else:
            raise ValueError("synthesize needs either a clone prompt or a preset speaker")

        verbose(self.logger, "chunk_rendered", chars=len(context.phrase), seconds=round(t.seconds, 3))
        return self._wav(wavs, sr)

    def design_voice(self, description: str, language: str) -> bytes:
        model = self._model(VOICE_DESIGN_MODEL)
        with timeit("design") as t:
            wavs, sr = model.generate_voice_design(
                text=DESIGN_SAMPLE_TEXT, language=self._language(language), instruct=description,
            )
        info(self.logger, "voice_designed", seconds=round(t.seconds, 3))
        return self._wav(wavs, sr)

    def extract_clone_prompt(
        self,
        audio: bytes,
        description: Optional[str],
        variant: str,
        transcript: Optional[str] = None,
    ) -> bytes:
        model = self._model(base_model_id(variant))
        wav, sr = wav_bytes_to_float32(audio)
        with timeit("extract") as t:
            prompt = model.create_voice_clone_prompt(
                ref_audio=(wav, sr),
                ref_text=transcript,
                x_vector_only_mode=transcript is None,
            )
        blob = self._serialize_prompt(prompt)
        info(self.logger, "clone_prompt_extracted", variant=variant, bytes=len(blob), seconds=round(t.seconds, 3))
        return blob
