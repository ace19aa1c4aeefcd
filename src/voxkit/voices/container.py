"""
The ``.vox`` voice container: a zip archive carrying one voice identity.

Layout:

    manifest.json
    embeddings/qwen3-tts/<variant>/clone-prompt.bin   one per model variant
    embeddings/qwen3-tts/sample-audio.wav             engine-rendered sample
    reference/<file name>                             user reference audio

Embeddings for different variants live under different paths, so adding
one never disturbs another. Updates rewrite the whole archive to a temp
file and rename it over the original; entries other than the one being
replaced are copied byte for byte and unknown manifest fields survive.

Example:
    >>> manifest = new_manifest("narrator", "A calm narrator", method="designed")
    >>> export_vox(path, manifest, clone_prompt=blob, variant="1.7b")
    >>> update_clone_prompt(path, other_blob, "0.6b")
    >>> import_vox(path, "0.6b").clone_prompt == other_blob
    True
"""
from __future__ import annotations

import io
import json
import os
import tempfile
import uuid
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from voxkit.core.errors import ContainerImportFailed, ContainerUpdateFailed
from voxkit.core.logging import get_logger, info, verbose
from voxkit.core.metrics import metrics
from voxkit.tts.concurrency import KeyedLocks
from voxkit.tts.variants import DEFAULT_VARIANT, base_model_id, variant_slug

_LOG = get_logger("voxkit.container")

VOX_FORMAT_VERSION = "0.1.0"
VOX_SUFFIX = ".vox"
ENGINE = "qwen3-tts"
MANIFEST_PATH = "manifest.json"
EMBEDDINGS_PREFIX = f"embeddings/{ENGINE}/"
SAMPLE_AUDIO_PATH = f"{EMBEDDINGS_PREFIX}sample-audio.wav"
REFERENCE_PREFIX = "reference/"
_CLONE_PROMPT_NAME = "clone-prompt.bin"

# Rewrites of one archive are serialised; different archives proceed in parallel.
_ARCHIVE_LOCKS = KeyedLocks()


def clone_prompt_path(variant: str) -> str:
    """
    Archive path of the clone prompt for ``variant`` (a slug or a model id).

    >>> clone_prompt_path("1.7b")
    'embeddings/qwen3-tts/1.7b/clone-prompt.bin'
    """
    return f"{EMBEDDINGS_PREFIX}{variant_slug(variant)}/{_CLONE_PROMPT_NAME}"


class VoiceIdentity(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1)
    description: str = ""


class Provenance(BaseModel):
    model_config = ConfigDict(extra="allow")

    method: Optional[str] = None
    engine: str = ENGINE


class EmbeddingEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: Optional[str] = None
    engine: str = ENGINE
    format: str = "bin"
    description: str = ""


class VoxManifest(BaseModel):
    model_config = ConfigDict(extra="allow")

    vox_version: str = VOX_FORMAT_VERSION
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc).replace(microsecond=0))
    voice: VoiceIdentity
    provenance: Optional[Provenance] = None
    embeddings: Dict[str, EmbeddingEntry] = Field(default_factory=dict)


def new_manifest(name: str, description: Optional[str], method: Optional[str], engine: str = ENGINE) -> VoxManifest:
    """
    Manifest for a freshly created voice.

    Args:
        name: Voice name stored in ``voice.name``.
        description: Voice description; None is stored as "".
        method: Provenance method ("designed", "cloned" or "builtin").
        engine: Engine that produced the voice.

    Returns:
        A VoxManifest with a new id, the current timestamp and no embeddings.
    """
    return VoxManifest(
        voice=VoiceIdentity(name=name, description=description or ""),
        provenance=Provenance(method=method, engine=engine),
    )


def _clone_prompt_entry(variant: str) -> EmbeddingEntry:
    return EmbeddingEntry(
        model=base_model_id(variant),
        format="bin",
        description=f"Clone prompt for voice cloning ({variant_slug(variant)})",
    )


def _sample_audio_entry() -> EmbeddingEntry:
    return EmbeddingEntry(format="wav", description="Engine-generated voice sample")


@dataclass
class VoxImportResult:
    name: str
    description: str
    provenance_method: Optional[str]
    supported_variants: List[str]
    clone_prompt: Optional[bytes]
    sample_audio: Optional[bytes]
    reference_audio: Dict[str, bytes]
    created_at: datetime
    manifest: VoxManifest
    entries: List[str] = field(default_factory=list)


def _pack(entries: Mapping[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _dump_manifest(manifest: Union[VoxManifest, Dict[str, Any]]) -> bytes:
    raw = manifest.model_dump(mode="json", exclude_none=True) if isinstance(manifest, VoxManifest) else manifest
    return json.dumps(raw, indent=2, sort_keys=True, ensure_ascii=False).encode("utf-8")


def build_vox(
    manifest: VoxManifest,
    clone_prompt: Optional[bytes] = None,
    variant: str = DEFAULT_VARIANT,
    reference_audio: Optional[Mapping[str, bytes]] = None,
    sample_audio: Optional[bytes] = None,
) -> bytes:
    """
    Create a new archive in memory.

    Reference audio keys are reduced to their base name and stored under
    ``reference/``. The manifest's embeddings map is filled in for every
    embedding written.
    """
    manifest = manifest.model_copy(deep=True)
    entries: Dict[str, bytes] = {}

    if clone_prompt is not None:
        path = clone_prompt_path(variant)
        entries[path] = clone_prompt
        manifest.embeddings[path] = _clone_prompt_entry(variant)

    if sample_audio is not None:
        entries[SAMPLE_AUDIO_PATH] = sample_audio
        manifest.embeddings[SAMPLE_AUDIO_PATH] = _sample_audio_entry()

    for filename, data in (reference_audio or {}).items():
        entries[f"{REFERENCE_PREFIX}{Path(filename).name}"] = data

    return _pack({MANIFEST_PATH: _dump_manifest(manifest), **entries})


def export_vox(path: Union[str, Path], manifest: VoxManifest, **kwargs: Any) -> Path:
    """Build an archive (see ``build_vox``) and write it atomically to ``path``."""
    path = Path(path)
    data = build_vox(manifest, **kwargs)
    with _ARCHIVE_LOCKS.hold(str(path.resolve())):
        _write_atomic(path, data)
    info(_LOG, "vox_exported", path=str(path), voice=manifest.voice.name, bytes=len(data))
    return path


def _read_entries(data: bytes) -> Tuple[Dict[str, Any], VoxManifest, Dict[str, bytes]]:
    """Unpack an archive. Raises zipfile/json/pydantic errors for the caller to map."""
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        entries = {item.filename: zf.read(item) for item in zf.infolist() if not item.is_dir()}
    if MANIFEST_PATH not in entries:
        raise KeyError(f"archive has no {MANIFEST_PATH}")
    raw = json.loads(entries.pop(MANIFEST_PATH).decode("utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("manifest must be a JSON object")
    return raw, VoxManifest.model_validate(raw), entries


_READ_ERRORS = (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, KeyError, ValueError, UnicodeDecodeError, RuntimeError, EOFError)


def import_vox(source: Union[str, Path, bytes], variant: str = DEFAULT_VARIANT) -> VoxImportResult:
    """
    Read an archive from a path or from raw bytes.

    ``clone_prompt`` holds the embedding for ``variant`` when the archive
    has one. ``supported_variants`` lists every variant with an embedded
    clone prompt.

    Raises:
        ContainerImportFailed: For unreadable, non-zip or corrupt input, or
            a manifest that does not validate. Nothing is returned partially.
    """
    label = "<bytes>" if isinstance(source, (bytes, bytearray)) else str(source)
    try:
        data = bytes(source) if isinstance(source, (bytes, bytearray)) else Path(source).read_bytes()
    except OSError as e:
        raise ContainerImportFailed(str(e), path=label) from e

    try:
        _, manifest, entries = _read_entries(data)
    except ValidationError as e:
        raise ContainerImportFailed(f"invalid manifest: {e.error_count()} error(s)", path=label) from e
    except _READ_ERRORS as e:
        raise ContainerImportFailed(str(e) or type(e).__name__, path=label) from e

    supported = sorted(
        path[len(EMBEDDINGS_PREFIX):-len(_CLONE_PROMPT_NAME) - 1]
        for path in entries
        if path.startswith(EMBEDDINGS_PREFIX) and path.endswith("/" + _CLONE_PROMPT_NAME)
    )
    reference = {
        path[len(REFERENCE_PREFIX):]: blob
        for path, blob in entries.items()
        if path.startswith(REFERENCE_PREFIX) and len(path) > len(REFERENCE_PREFIX)
    }

    result = VoxImportResult(
        name=manifest.voice.name,
        description=manifest.voice.description,
        provenance_method=manifest.provenance.method if manifest.provenance else None,
        supported_variants=supported,
        clone_prompt=entries.get(clone_prompt_path(variant)),
        sample_audio=entries.get(SAMPLE_AUDIO_PATH),
        reference_audio=reference,
        created_at=manifest.created,
        manifest=manifest,
        entries=sorted(entries),
    )
    verbose(_LOG, "vox_imported", path=label, voice=result.name, variants=",".join(supported) or "-")
    return result


def _update_entry(path: Union[str, Path], entry_path: str, blob: bytes, entry: EmbeddingEntry, target: str) -> None:
    path = Path(path)
    with _ARCHIVE_LOCKS.hold(str(path.resolve())):
        try:
            raw, _, entries = _read_entries(path.read_bytes())
            entries[entry_path] = blob
            embeddings = raw.get("embeddings")
            if not isinstance(embeddings, dict):
                embeddings = raw["embeddings"] = {}
            embeddings[entry_path] = entry.model_dump(mode="json", exclude_none=True)
            _write_atomic(path, _pack({MANIFEST_PATH: _dump_manifest(raw), **entries}))
        except ValidationError as e:
            metrics.record_container_update(target, ok=False)
            raise ContainerUpdateFailed(f"invalid manifest: {e.error_count()} error(s)", path=str(path)) from e
        except (OSError, *_READ_ERRORS) as e:
            metrics.record_container_update(target, ok=False)
            raise ContainerUpdateFailed(str(e) or type(e).__name__, path=str(path)) from e
    metrics.record_container_update(target, ok=True)
    info(_LOG, "vox_updated", path=path.name, entry=entry_path, bytes=len(blob))


def update_clone_prompt(path: Union[str, Path], blob: bytes, variant: str) -> None:
    """
    Write or replace the clone prompt for ``variant``, leaving every other
    entry untouched.

    Raises:
        ContainerUpdateFailed: If the archive cannot be read or rewritten.
    """
    _update_entry(path, clone_prompt_path(variant), blob, _clone_prompt_entry(variant), "clone_prompt")


def update_sample_audio(path: Union[str, Path], sample: bytes) -> None:
    """Write or replace the engine sample audio. Same rules as ``update_clone_prompt``."""
    _update_entry(path, SAMPLE_AUDIO_PATH, sample, _sample_audio_entry(), "sample_audio")


def vox_path(voices_dir: Union[str, Path], voice_name: str) -> Path:
    """Installed container of ``voice_name`` inside the voices directory."""
    return Path(voices_dir) / f"{voice_name}{VOX_SUFFIX}"
