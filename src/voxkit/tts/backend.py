"""
Synthesis backend contract and factory.

voxkit never runs inference itself. A backend turns text into PCM audio,
renders a sample for a voice description, and extracts clone prompts
(opaque voiceprint blobs) from sample audio:

    synthesize(context, clone_prompt | speaker, language, variant) -> WAV bytes
    design_voice(description, language) -> WAV bytes
    extract_clone_prompt(audio, description, variant, transcript) -> bytes

Backends load their models lazily on first use.

Implementing a new backend:
    1. Create engines/<name>_engine.py
    2. Inherit from BaseVoiceBackend and implement the three calls
    3. Register it in _create_backend()
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

from voxkit.core.config import Settings
from voxkit.core.logging import get_logger
from voxkit.tts.context import GenerationContext

# Text spoken when rendering a designed voice; also the transcript handed
# to clone extraction for such renders.
DESIGN_SAMPLE_TEXT = "Hello, this is a voice sample for testing purposes."


@dataclass(frozen=True)
class BackendCapabilities:
    preset_speakers: bool
    voice_design: bool
    clone_extraction: bool


class BaseVoiceBackend:
    """
    Base class for synthesis backends.

    Attributes:
        name: Backend identifier used in settings (``model.engine``).
        sample_rate: Rate of the WAV buffers the backend returns.
        capabilities: Which of the collaborator calls are supported.
    """

    name: str = "base"
    sample_rate: int = 24000
    capabilities: BackendCapabilities = BackendCapabilities(
        preset_speakers=False,
        voice_design=False,
        clone_extraction=False,
    )

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = get_logger(f"voxkit.backend.{self.name}")
        self._loaded = False

    def load(self, variant: str) -> None:
        """
        Load the model for ``variant`` eagerly.

        Backends otherwise load lazily on first use.

        Raises:
            ModelUnavailable: The model or its runtime cannot be loaded.
        """
        raise NotImplementedError

    def is_loaded(self) -> bool:
        """Whether any model is resident in memory."""
        return bool(self._loaded)

    def synthesize(
        self,
        context: GenerationContext,
        *,
        clone_prompt: Optional[bytes] = None,
        speaker: Optional[str] = None,
        language: str,
        variant: str,
    ) -> bytes:
        """
        Render one chunk to a WAV buffer.

        Exactly one of ``clone_prompt`` and ``speaker`` is given: a clone
        prompt for cached voices, a fixed speaker id for presets.
        """
        raise NotImplementedError

    def design_voice(self, description: str, language: str) -> bytes:
        """
        Render DESIGN_SAMPLE_TEXT in a new voice described by ``description``.

        Returns:
            WAV bytes; the sample is later fed to ``extract_clone_prompt`` with
            DESIGN_SAMPLE_TEXT as its transcript.
        """
        raise NotImplementedError

    def extract_clone_prompt(
        self,
        audio: bytes,
        description: Optional[str],
        variant: str,
        transcript: Optional[str] = None,
    ) -> bytes:
        """
        Derive a clone prompt for ``variant`` from ``audio``.

        ``transcript`` is what the audio says when known (engine renders);
        without it the backend falls back to speaker-embedding-only cloning.
        """
        raise NotImplementedError


_BACKEND: Optional[BaseVoiceBackend] = None
_BACKEND_TYPE: Optional[str] = None
_BACKEND_LOCK = threading.Lock()


def _create_backend(engine_type: str, settings: Settings) -> BaseVoiceBackend:
    # Lazy import keeps torch out of processes that never synthesize.
    if engine_type == "qwen3tts":
        from voxkit.tts.engines.qwen3tts_engine import Qwen3TTSBackend
        return Qwen3TTSBackend(settings)
    raise ValueError(f"Unknown engine type: {engine_type}")


def get_backend(settings: Settings) -> BaseVoiceBackend:
    """Process-wide backend instance; replaced if the configured engine changes."""
    global _BACKEND
    global _BACKEND_TYPE

    engine_type = settings.engine_type
    if _BACKEND is None or _BACKEND_TYPE != engine_type:
        with _BACKEND_LOCK:
            if _BACKEND is None or _BACKEND_TYPE != engine_type:
                _BACKEND = _create_backend(engine_type, settings)
                _BACKEND_TYPE = engine_type
    return _BACKEND


def reset_backend() -> None:
    """Forget the shared backend (used by tests)."""
    global _BACKEND
    global _BACKEND_TYPE
    with _BACKEND_LOCK:
        _BACKEND = None
        _BACKEND_TYPE = None
