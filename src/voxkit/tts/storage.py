"""
On-disk tiers of the clone-prompt cache.

Layout inside the voices directory:

    <name>-<variant>.blob   current, one file per model variant
    <name>.blob             legacy, belongs to a single fixed variant

Writes go to a temporary sibling and are renamed over the target, so a
crash or cancellation never leaves a half-written blob behind. Reads and
writes report failures through logging instead of raising: the disk tiers
are an optimisation and must not fail a synthesis request.
"""
from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Optional, Tuple

from voxkit.core.errors import CacheWriteWarning
from voxkit.core.logging import debug, get_logger, verbose, warn
from voxkit.core.metrics import metrics
from voxkit.tts.variants import VARIANT_SLUG_PATTERN
from voxkit.utils.timeit import timeit

_LOG = get_logger("voxkit.cache.disk")

BLOB_SUFFIX = ".blob"


def variant_blob_path(voices_dir: Path, voice_name: str, variant: str) -> Path:
    """Tier-2 file for ``voice_name`` extracted with ``variant``."""
    return Path(voices_dir) / f"{voice_name}-{variant}{BLOB_SUFFIX}"


def legacy_blob_path(voices_dir: Path, voice_name: str) -> Path:
    """Tier-3 file written before blobs carried a variant suffix."""
    return Path(voices_dir) / f"{voice_name}{BLOB_SUFFIX}"


def try_load_blob(path: Path) -> Tuple[Optional[bytes], Dict[str, float]]:
    """
    Read a cached blob.

    Returns:
        (bytes or None, timings). None for a missing, empty or unreadable
        file; an unreadable file is logged as a warning.
    """
    timings: Dict[str, float] = {}
    with timeit("disk_get") as t:
        data: Optional[bytes] = None
        try:
            if path.is_file():
                data = path.read_bytes() or None
        except OSError as e:
            warn(_LOG, "blob_read_failed", path=str(path), error=str(e))
            data = None
    timings["disk_get"] = t.seconds
    if data is not None:
        verbose(_LOG, "blob_read", path=path.name, bytes=len(data), seconds=round(t.seconds, 5))
    return data, timings


def save_blob(path: Path, data: bytes) -> bool:
    """
    Atomically write ``data`` to ``path``.

    Returns:
        True on success. On failure a CacheWriteWarning is logged and False
        is returned; the caller keeps serving from memory.
    """
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        warning = CacheWriteWarning(str(e), path=str(path))
        warn(_LOG, "cache_write_warning", **warning.to_dict())
        metrics.record_cache_write_warning()
        return False
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    debug(_LOG, "blob_saved", path=path.name, bytes=len(data))
    return True


def delete_voice_blobs(voices_dir: Path, voice_name: str) -> int:
    """
    Remove the legacy blob and every variant blob of ``voice_name``.

    Only files whose suffix after ``<name>-`` is a variant slug are removed,
    so ``narrator-two.blob`` (another voice's legacy file) is left alone.
    """
    voices_dir = Path(voices_dir)
    if not voices_dir.is_dir():
        return 0

    pattern = re.compile(rf"^{re.escape(voice_name)}(?:-{VARIANT_SLUG_PATTERN})?{re.escape(BLOB_SUFFIX)}$")
    removed = 0
    for entry in voices_dir.iterdir():
        if entry.is_file() and pattern.match(entry.name):
            try:
                entry.unlink()
                removed += 1
            except FileNotFoundError:
                pass
    if removed:
        verbose(_LOG, "blobs_deleted", voice=voice_name, count=removed)
    return removed
