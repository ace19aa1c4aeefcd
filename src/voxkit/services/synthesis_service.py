"""
Synthesis service: the one entry point used by the HTTP API and the CLI.

A synthesis request moves through fixed stages:

    resolving -> (preset | clone prompt) -> chunking -> synthesizing[0..n)
              -> concatenating -> done

Preset voices skip the clone-prompt cache and pass their speaker id to the
backend. Every other voice gets its clone prompt from ClonePromptCache.
Chunks are rendered strictly one after another; the first backend failure
aborts the request with SynthesisFailed naming the chunk, and no partial
audio is returned.

The service also manages voices: design, clone, import and export of
``.vox`` containers, deletion and listing.

Usage:
    service = SynthesisService(load_settings())
    result = service.synthesize(SynthesizeRequest(text="Hello.", voice="narrator"), "req-1")
    Path("out.wav").write_bytes(result.audio)
"""
from __future__ import annotations

import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from voxkit.core.config import Settings, VoxkitConfig
from voxkit.core.errors import ContainerImportFailed, InvalidInput, ModelUnavailable, SynthesisFailed, VoxkitError
from voxkit.core.logging import debug, fail, get_logger, info, success, verbose
from voxkit.core.metrics import metrics
from voxkit.tts.backend import BaseVoiceBackend, get_backend
from voxkit.tts.cache import ClonePromptMemory
from voxkit.tts.chunker import chunk_text
from voxkit.tts.clone_cache import ClonePromptCache, ReferenceGenerator
from voxkit.tts.context import GenerationContext
from voxkit.tts.variants import variant_slug
from voxkit.utils.audio import concatenate_wavs, encode_audio, wav_sample_rate
from voxkit.utils.timeit import timeit
from voxkit.voices.catalog import VoiceCatalog
from voxkit.voices.container import (
    build_vox,
    export_vox,
    import_vox,
    new_manifest,
    vox_path,
)
from voxkit.voices.models import VoiceKind, VoiceRecord
from voxkit.voices.validators import validate_description, validate_text, validate_voice_name

_LOG = get_logger("voxkit.service")

# provenance.method -> kind of the imported voice
_METHOD_KINDS = {
    "designed": VoiceKind.DESIGNED,
    "builtin": VoiceKind.DESIGNED,
    "cloned": VoiceKind.CLONED,
}


def _discard(tmp_name: str) -> None:
    try:
        os.unlink(tmp_name)
    except OSError:
        pass


@dataclass
class SynthesizeRequest:
    """
    Attributes:
        text: Text to speak.
        voice: Voice name; the default built-in voice when omitted.
        language: Language code; the configured default when omitted.
        variant: Model variant slug; the configured variant when omitted.
        format: Output format (wav, flac or ogg).
    """
    text: str
    voice: Optional[str] = None
    language: Optional[str] = None
    variant: Optional[str] = None
    format: Optional[str] = None


@dataclass
class SynthesizeResult:
    audio: bytes
    format: str
    sample_rate: int
    voice: str
    voice_kind: str
    chunks: int
    clone_prompt_tier: Optional[str]
    total_seconds: float
    request_id: str
    timings: Dict[str, float] = field(default_factory=dict)


class SynthesisService:
    """
    Wires catalog, clone-prompt cache and backend together.

    Collaborators may be passed in (tests do); otherwise they are built
    from settings, with the backend shared process-wide via get_backend().
    """

    def __init__(
        self,
        settings: Settings,
        backend: Optional[BaseVoiceBackend] = None,
        catalog: Optional[VoiceCatalog] = None,
        cache: Optional[ClonePromptCache] = None,
        reference_generator: Optional[ReferenceGenerator] = None,
    ):
        self._settings = settings
        self._config: VoxkitConfig = VoxkitConfig.from_settings(settings)
        self._voices_dir = self._config.voices.path

        self._backend = backend if backend is not None else get_backend(settings)
        self._catalog = catalog if catalog is not None else VoiceCatalog(self._voices_dir)
        self._cache = cache if cache is not None else ClonePromptCache(
            self._backend,
            self._voices_dir,
            legacy_variant=self._config.voices.legacy_variant,
            language=self._config.model.language,
            memory=ClonePromptMemory(self._config.cache.memory_max_items),
            reference_generator=reference_generator,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> VoxkitConfig:
        return self._config

    @property
    def backend(self) -> BaseVoiceBackend:
        return self._backend

    @property
    def catalog(self) -> VoiceCatalog:
        return self._catalog

    @property
    def cache(self) -> ClonePromptCache:
        return self._cache

    def synthesize(self, request: SynthesizeRequest, request_id: str = "-") -> SynthesizeResult:
        """
        Render ``request.text`` with the requested voice.

        Raises:
            InvalidInput: Empty text, unknown variant or format.
            VoiceNotFound: The voice name matches nothing.
            CloneExtractionFailed: No clone prompt could be produced.
            SynthesisFailed: The backend failed on a chunk.
            ModelUnavailable: The backend cannot load its model.
        """
        text = validate_text(request.text)
        language = request.language or self._config.model.language
        fmt = (request.format or self._config.audio.format).lower()
        try:
            variant = variant_slug(request.variant or self._config.model.variant)
        except ValueError as e:
            raise InvalidInput(str(e), field="variant") from e

        timings: Dict[str, float] = {}
        info(_LOG, "request", chars=len(text), voice=request.voice or "(default)", variant=variant)

        voice_kind = "unknown"
        try:
            with timeit("request_total") as total_t:
                verbose(_LOG, "stage", event="resolving")
                voice = self._catalog.resolve(request.voice)
                voice_kind = voice.kind.value

                clone_prompt: Optional[bytes] = None
                speaker: Optional[str] = None
                tier: Optional[str] = None
                if voice.kind is VoiceKind.PRESET:
                    speaker = voice.source_reference or voice.name
                    verbose(_LOG, "stage", event="preset", speaker=speaker)
                else:
                    lookup = self._cache.get(voice, variant)
                    clone_prompt, tier = lookup.blob, lookup.tier.value
                    timings["clone_prompt"] = lookup.seconds
                    verbose(_LOG, "stage", event="clone_prompt", tier=tier, seconds=round(lookup.seconds, 4))

                result = chunk_text(text, self._config.chunking.max_words, language)
                chunks = result.chunks
                timings["chunk"] = result.timings_s["chunk"]
                verbose(_LOG, "stage", event="chunking", chunks=len(chunks))

                segments = self._synthesize_chunks(chunks, clone_prompt, speaker, language, variant, timings)

                verbose(_LOG, "stage", event="concatenating", segments=len(segments))
                with timeit("concatenate") as t_cat:
                    sample_rate = wav_sample_rate(segments[0], self._config.audio.sample_rate)
                    wav = concatenate_wavs(segments, sample_rate)
                    audio = encode_audio(wav, fmt)
                timings["concatenate"] = t_cat.seconds
        except VoxkitError as e:
            fail(_LOG, "request_failed", error=e.code, message=e.message)
            metrics.record_request("error", sum(timings.values()), voice_kind)
            raise

        total_s = total_t.seconds
        success(_LOG, "done", voice=voice.name, chunks=len(chunks), bytes=len(audio), seconds=round(total_s, 3))
        metrics.record_request("success", total_s, voice_kind, audio_bytes=len(audio))

        return SynthesizeResult(
            audio=audio,
            format=fmt,
            sample_rate=sample_rate,
            voice=voice.name,
            voice_kind=voice_kind,
            chunks=len(chunks),
            clone_prompt_tier=tier,
            total_seconds=total_s,
            request_id=request_id,
            timings=timings,
        )

    def _synthesize_chunks(
        self,
        chunks: List[str],
        clone_prompt: Optional[bytes],
        speaker: Optional[str],
        language: str,
        variant: str,
        timings: Dict[str, float],
    ) -> List[bytes]:
        segments: List[bytes] = []
        for index, chunk in enumerate(chunks):
            context = GenerationContext(chunk, {"chunk_index": index, "chunk_count": len(chunks)})
            with timeit("synth") as t:
                try:
                    segment = self._backend.synthesize(
                        context,
                        clone_prompt=clone_prompt,
                        speaker=speaker,
                        language=language,
                        variant=variant,
                    )
                except ModelUnavailable:
                    raise
                except Exception as e:
                    raise SynthesisFailed(index, f"{type(e).__name__}: {e}") from e
            timings[f"synth_{index}"] = t.seconds
            metrics.record_chunk()
            verbose(_LOG, "stage", event="synthesizing", chunk=index + 1, total=len(chunks), seconds=round(t.seconds, 3))
            segments.append(segment)
        return segments

    def list_voices(self) -> List[VoiceRecord]:
        """Custom voices followed by unshadowed built-ins."""
        return self._catalog.list_voices()

    def design_voice(self, name: str, description: str) -> VoiceRecord:
        """Register a voice rendered from ``description``; the clone prompt is derived lazily."""
        record = VoiceRecord(
            name=validate_voice_name(name),
            kind=VoiceKind.DESIGNED,
            description=validate_description(description),
        )
        self._save_with_container(record)
        return record

    def clone_voice(self, name: str, reference_path: Union[str, Path], description: Optional[str] = None) -> VoiceRecord:
        """Register a voice cloned from the audio file at ``reference_path``."""
        path = Path(reference_path).expanduser()
        if not path.is_file():
            raise InvalidInput(f"Reference audio not found: {path}", field="reference_path")
        record = VoiceRecord(
            name=validate_voice_name(name),
            kind=VoiceKind.CLONED,
            description=description.strip() if description else None,
            source_reference=str(path.resolve()),
        )
        self._save_with_container(record, reference_audio={path.name: path.read_bytes()})
        return record

    def _save_with_container(self, record: VoiceRecord, reference_audio: Optional[Dict[str, bytes]] = None) -> None:
        # Replacing a voice must not resurface blobs derived for the old one.
        self._catalog.delete(record.name)
        self._cache.evict(record.name)
        manifest = new_manifest(record.name, record.description, method=record.kind.value)
        export_vox(vox_path(self._voices_dir, record.name), manifest, reference_audio=reference_audio)
        self._catalog.save(record)

    def import_voice(self, archive: Union[str, Path, bytes], name: Optional[str] = None) -> VoiceRecord:
        """
        Install a ``.vox`` container into the voices directory.

        The archive is copied verbatim, a catalog record is created from its
        manifest and, when it embeds a clone prompt for the configured
        variant, the prompt seeds the cache directly.

        Raises:
            ContainerImportFailed: The archive is unreadable or invalid.
        """
        variant = self._config.model.variant
        imported = import_vox(archive, variant)
        voice_name = validate_voice_name(name or imported.name)
        kind = _METHOD_KINDS.get((imported.provenance_method or "").lower(), VoiceKind.DESIGNED)

        if kind is VoiceKind.CLONED and not imported.reference_audio:
            # Without reference audio the voice can only come from embeddings.
            kind = VoiceKind.DESIGNED

        # Stage everything first; an existing voice is only replaced once
        # the new files are complete.
        target = vox_path(self._voices_dir, voice_name)
        staged: List[Tuple[str, Path]] = []
        try:
            if isinstance(archive, (bytes, bytearray)):
                staged.append((self._stage(voice_name, bytes(archive)), target))
            elif Path(archive).resolve() != target.resolve():
                staged.append((self._stage(voice_name, Path(archive).read_bytes()), target))

            source_reference = None
            if kind is VoiceKind.CLONED:
                filename = sorted(imported.reference_audio)[0]
                ref_path = self._voices_dir / f"{voice_name}-reference{Path(filename).suffix or '.wav'}"
                staged.append((self._stage(voice_name, imported.reference_audio[filename]), ref_path))
                source_reference = str(ref_path)
        except OSError as e:
            for tmp_name, _ in staged:
                _discard(tmp_name)
            raise ContainerImportFailed(f"could not install archive: {e}", path=str(target)) from e

        self._catalog.delete(voice_name)
        self._cache.evict(voice_name)
        for tmp_name, dest in staged:
            os.replace(tmp_name, dest)

        record = VoiceRecord(
            name=voice_name,
            kind=kind,
            description=imported.description or None,
            source_reference=source_reference,
            created_at=imported.created_at,
        )
        self._catalog.save(record)

        if imported.clone_prompt:
            self._cache.store(voice_name, variant, imported.clone_prompt)
        info(_LOG, "voice_imported", voice=voice_name, kind=kind.value,
             variants=",".join(imported.supported_variants) or "-")
        return record

    def _stage(self, voice_name: str, data: bytes) -> str:
        """Write ``data`` to a temporary file inside the voices directory and return its path."""
        self._voices_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{voice_name}.", suffix=".tmp", dir=str(self._voices_dir))
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
        except OSError:
            _discard(tmp_name)
            raise
        return tmp_name

    def export_voice(self, name: str) -> bytes:
        """
        Build a ``.vox`` archive for ``name``.

        Non-preset voices include their clone prompt for the configured
        variant (derived if needed), any sample audio from the installed
        container, and, for cloned voices, the reference audio.
        """
        voice = self._catalog.resolve(name)
        variant = self._config.model.variant
        manifest = new_manifest(voice.name, voice.description, method=voice.kind.value)

        if voice.kind is VoiceKind.PRESET:
            return build_vox(manifest, variant=variant)

        blob = self._cache.get(voice, variant).blob

        sample_audio = None
        installed = vox_path(self._voices_dir, voice.name)
        if installed.exists():
            sample_audio = import_vox(installed, variant).sample_audio

        reference_audio = None
        if voice.kind is VoiceKind.CLONED and voice.source_reference:
            ref = Path(voice.source_reference).expanduser()
            if ref.is_file():
                reference_audio = {ref.name: ref.read_bytes()}

        data = build_vox(manifest, clone_prompt=blob, variant=variant,
                         reference_audio=reference_audio, sample_audio=sample_audio)
        debug(_LOG, "voice_exported", voice=voice.name, bytes=len(data))
        return data

    def delete_voice(self, name: str) -> bool:
        """Remove a custom voice, its cache blobs, its memory entries and its container."""
        found = self._catalog.delete(name)
        self._cache.evict(name)
        container = vox_path(self._voices_dir, name)
        if found and container.exists():
            container.unlink()
        return found

    def get_health_info(self) -> Dict[str, Any]:
        """
        Get health and status information.

        Returns a dictionary with:
            - ok flag, backend name and whether a model is loaded
            - configured variant, device and voices directory
            - backend capabilities and chunking settings
            - clone-prompt cache statistics
        """
        loaded = bool(self._backend.is_loaded())
        metrics.set_backend_loaded(self._backend.name, loaded)
        return {
            "ok": True,
            "engine": self._backend.name,
            "loaded": loaded,
            "variant": self._config.model.variant,
            "device": self._config.model.device,
            "voices_dir": str(self._voices_dir),
            "capabilities": {
                "preset_speakers": self._backend.capabilities.preset_speakers,
                "voice_design": self._backend.capabilities.voice_design,
                "clone_extraction": self._backend.capabilities.clone_extraction,
            },
            "chunking": {"max_words": self._config.chunking.max_words},
            "cache": self._cache.stats(),
        }


_service: Optional[SynthesisService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> SynthesisService:
    """
    Get or create the global SynthesisService instance.

    Thread-safe lazy singleton. The service is created on first call and
    reused afterwards; ``settings`` is ignored once it exists.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = SynthesisService(settings)
    return _service


def reset_service() -> None:
    """Reset the global service instance (used by tests)."""
    global _service
    with _service_lock:
        _service = None
