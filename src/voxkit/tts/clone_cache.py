"""
Clone-prompt cache: one voiceprint blob per (voice, model variant).

Lookups walk five tiers in order and stop at the first hit:

    1. memory     in-process LRU map
    2. disk       <voice>-<variant>.blob
    3. legacy     <voice>.blob, only for the configured legacy variant;
                  migrated forward to the tier-2 file on hit
    4. container  <voice>.vox: an embedded prompt for the variant, else a
                  fresh extraction from its sample audio (preferred) or
                  its reference audio
    5. derived    cold derivation: reference audio for cloned voices,
                  design + extraction for designed and built-in voices

Everything found below tier 1 is promoted upwards. Disk and container
writes are best-effort: failures are logged as cache write warnings and
the lookup still succeeds from memory. Only a tier-5 failure reaches the
caller, as CloneExtractionFailed; a backend whose model cannot be loaded
raises ModelUnavailable from any extracting tier.

Lookups for one key are serialised through a per-key lock, so concurrent
requests for the same voice and variant trigger at most one derivation;
the waiters are then served from memory.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from voxkit.core.config import Defaults
from voxkit.core.errors import (
    CacheWriteWarning,
    CloneExtractionFailed,
    ContainerImportFailed,
    ContainerUpdateFailed,
    ModelUnavailable,
)
from voxkit.core.logging import get_logger, info, verbose, warn
from voxkit.core.metrics import metrics
from voxkit.tts.backend import DESIGN_SAMPLE_TEXT, BaseVoiceBackend
from voxkit.tts.cache import ClonePromptMemory, cache_key
from voxkit.tts.concurrency import KeyedLocks
from voxkit.tts.storage import legacy_blob_path, save_blob, try_load_blob, variant_blob_path
from voxkit.tts.variants import DEFAULT_VARIANT, variant_slug
from voxkit.utils.timeit import timeit
from voxkit.voices.container import import_vox, update_clone_prompt, update_sample_audio, vox_path
from voxkit.voices.models import VoiceKind, VoiceRecord

_LOG = get_logger("voxkit.cache")

# (record, expected reference path) -> None; must create the file.
ReferenceGenerator = Callable[[VoiceRecord, Path], None]


class CacheTier(str, Enum):
    MEMORY = "memory"
    DISK = "disk"
    LEGACY = "legacy"
    CONTAINER = "container"
    DERIVED = "derived"


@dataclass
class ClonePromptLookup:
    blob: bytes
    tier: CacheTier
    voice: str
    variant: str
    seconds: float


class ClonePromptCache:
    """
    Owns the memory tier, the cache files in ``voices_dir`` and all clone
    prompt updates of the voices' ``.vox`` containers.

    Attributes:
        backend: Used for design and clone extraction on tiers 4 and 5.
        voices_dir: Directory holding blobs and containers.
        legacy_variant: The variant unsuffixed legacy blobs belong to.
        language: Language passed to voice design.
    """

    def __init__(
        self,
        backend: BaseVoiceBackend,
        voices_dir: Path,
        legacy_variant: str = Defaults.LEGACY_VARIANT,
        language: str = Defaults.LANGUAGE,
        memory: Optional[ClonePromptMemory] = None,
        reference_generator: Optional[ReferenceGenerator] = None,
    ):
        self.backend = backend
        self.voices_dir = Path(voices_dir).expanduser()
        self.legacy_variant = variant_slug(legacy_variant)
        self.language = language
        self.reference_generator = reference_generator
        self._memory = memory if memory is not None else ClonePromptMemory()
        self._locks = KeyedLocks()
        self._tier_hits: Dict[str, int] = {tier.value: 0 for tier in CacheTier}

    @property
    def memory(self) -> ClonePromptMemory:
        return self._memory

    def get(self, voice: VoiceRecord, variant: str = DEFAULT_VARIANT) -> ClonePromptLookup:
        """
        Return the clone prompt for ``voice`` under ``variant``.

        Raises:
            ValueError: For preset voices, which never use a clone prompt.
            CloneExtractionFailed: When every tier missed and derivation failed.
        """
        if voice.kind is VoiceKind.PRESET:
            raise ValueError(f"preset voice {voice.name!r} has no clone prompt")

        variant = variant_slug(variant)
        key = cache_key(voice.name, variant)

        with timeit("clone_prompt") as t:
            tier = CacheTier.MEMORY
            blob = self._memory.get(key)
            if blob is None:
                with self._locks.hold(key):
                    # A concurrent caller may have committed while we waited.
                    blob = self._memory.get(key)
                    if blob is None:
                        blob, tier = self._fill(voice, variant, key)

        self._tier_hits[tier.value] += 1
        metrics.record_lookup(tier.value)
        info(_LOG, "clone_prompt_hit", voice=voice.name, variant=variant, tier=tier.value, seconds=round(t.seconds, 4))
        return ClonePromptLookup(blob=blob, tier=tier, voice=voice.name, variant=variant, seconds=t.seconds)

    def store(self, voice_name: str, variant: str, blob: bytes) -> None:
        """Seed tiers 1 and 2 with a known-good blob (e.g. from an imported container)."""
        variant = variant_slug(variant)
        key = cache_key(voice_name, variant)
        with self._locks.hold(key):
            save_blob(variant_blob_path(self.voices_dir, voice_name, variant), blob)
            self._memory.set(key, blob)

    def evict(self, voice_name: str) -> int:
        """Forget every in-memory variant of ``voice_name``. Files are the catalog's to delete."""
        return self._memory.evict_voice(voice_name)

    def stats(self) -> Dict[str, Any]:
        """Memory-tier counters plus lookups served per tier, for /health."""
        return {
            "memory": self._memory.stats(),
            "tiers": dict(self._tier_hits),
            "locks": self._locks.stats().__dict__,
        }

    def _fill(self, voice: VoiceRecord, variant: str, key: str) -> Tuple[bytes, CacheTier]:
        variant_file = variant_blob_path(self.voices_dir, voice.name, variant)

        blob, _ = try_load_blob(variant_file)
        if blob is not None:
            self._sync_container(voice.name, blob, variant)
            self._memory.set(key, blob)
            return blob, CacheTier.DISK

        if variant == self.legacy_variant:
            blob, _ = try_load_blob(legacy_blob_path(self.voices_dir, voice.name))
            if blob is not None:
                verbose(_LOG, "legacy_blob_migrated", voice=voice.name, variant=variant)
                save_blob(variant_file, blob)
                self._sync_container(voice.name, blob, variant)
                self._memory.set(key, blob)
                return blob, CacheTier.LEGACY

        blob = self._from_container(voice, variant)
        if blob is not None:
            save_blob(variant_file, blob)
            self._memory.set(key, blob)
            return blob, CacheTier.CONTAINER

        blob = self._derive(voice, variant)
        save_blob(variant_file, blob)
        self._sync_container(voice.name, blob, variant)
        self._memory.set(key, blob)
        return blob, CacheTier.DERIVED

    def _from_container(self, voice: VoiceRecord, variant: str) -> Optional[bytes]:
        path = vox_path(self.voices_dir, voice.name)
        if not path.exists():
            return None

        try:
            imported = import_vox(path, variant)
        except ContainerImportFailed as e:
            warn(_LOG, "container_unreadable", voice=voice.name, path=str(path), detail=e.detail)
            return None

        if imported.clone_prompt:
            return imported.clone_prompt

        # Engine-rendered sample first: its transcript is known.
        if imported.sample_audio:
            source, audio, transcript = "sample_audio", imported.sample_audio, DESIGN_SAMPLE_TEXT
        elif imported.reference_audio:
            filename = sorted(imported.reference_audio)[0]
            source, audio, transcript = f"reference/{filename}", imported.reference_audio[filename], None
        else:
            return None

        try:
            blob = self.backend.extract_clone_prompt(audio, voice.description, variant, transcript=transcript)
        except ModelUnavailable:
            raise
        except Exception as e:
            warn(_LOG, "container_extraction_failed", voice=voice.name, source=source, error=str(e))
            return None
        metrics.record_derivation("container")
        return blob

    def _derive(self, voice: VoiceRecord, variant: str) -> bytes:
        if voice.kind is VoiceKind.CLONED:
            return self._derive_from_reference(voice, variant)
        if voice.kind in (VoiceKind.DESIGNED, VoiceKind.BUILTIN):
            return self._derive_from_description(voice, variant)
        raise CloneExtractionFailed(f"unsupported voice kind: {voice.kind.value}", voice=voice.name, variant=variant)

    def _reference_path(self, voice: VoiceRecord) -> Path:
        path = Path(voice.source_reference or "").expanduser()
        return path if path.is_absolute() else self.voices_dir / path

    def _derive_from_reference(self, voice: VoiceRecord, variant: str) -> bytes:
        if not voice.source_reference:
            raise CloneExtractionFailed("cloned voice has no reference audio", voice=voice.name, variant=variant)

        path = self._reference_path(voice)
        try:
            if not path.exists() and self.reference_generator is not None:
                info(_LOG, "reference_generating", voice=voice.name, path=str(path))
                self.reference_generator(voice, path)
            audio = path.read_bytes()
            blob = self.backend.extract_clone_prompt(audio, voice.description, variant)
        except (CloneExtractionFailed, ModelUnavailable):
            raise
        except Exception as e:
            raise CloneExtractionFailed(f"{type(e).__name__}: {e}", voice=voice.name, variant=variant) from e

        metrics.record_derivation("reference")
        return blob

    def _derive_from_description(self, voice: VoiceRecord, variant: str) -> bytes:
        if not voice.description:
            raise CloneExtractionFailed("voice has no description to design from", voice=voice.name, variant=variant)

        try:
            sample = self.backend.design_voice(voice.description, self.language)
            blob = self.backend.extract_clone_prompt(sample, voice.description, variant, transcript=DESIGN_SAMPLE_TEXT)
        except ModelUnavailable:
            raise
        except Exception as e:
            raise CloneExtractionFailed(f"{type(e).__name__}: {e}", voice=voice.name, variant=variant) from e

        metrics.record_derivation("design")
        self._sync_sample_audio(voice.name, sample)
        return blob

    def _sync_container(self, voice_name: str, blob: bytes, variant: str) -> None:
        path = vox_path(self.voices_dir, voice_name)
        if not path.exists():
            return
        try:
            update_clone_prompt(path, blob, variant)
        except ContainerUpdateFailed as e:
            self._write_warning(e.detail, path)

    def _sync_sample_audio(self, voice_name: str, sample: bytes) -> None:
        path = vox_path(self.voices_dir, voice_name)
        if not path.exists():
            return
        try:
            update_sample_audio(path, sample)
        except ContainerUpdateFailed as e:
            self._write_warning(e.detail, path)

    @staticmethod
    def _write_warning(detail: str, path: Path) -> None:
        warning = CacheWriteWarning(detail, path=str(path))
        warn(_LOG, "cache_write_warning", **warning.to_dict())
        metrics.record_cache_write_warning()
