"""
Helpers shared by backend adapters: device selection and turning model
output (tensors, arrays, lists of either) into canonical WAV bytes.
"""
from __future__ import annotations

from typing import Any, Optional, Sequence

import numpy as np

from voxkit.core.logging import warn
from voxkit.utils.audio import wav_bytes_from_float32


def cuda_available() -> bool:
    """True when torch is importable and sees a CUDA device."""
    try:
        import torch
    except ImportError:
        return False
    return torch.cuda.is_available()


def resolve_device(wanted: str, logger: Optional[Any] = None) -> str:
    """
    Resolve ``cuda`` / ``cpu`` / ``auto`` to a usable device string.

    ``cuda`` without a GPU falls back to CPU with a warning; ``auto`` and
    empty prefer the GPU; ``mps`` and other explicit strings pass through.
    """
    wanted = (wanted or "").lower().strip()

    if wanted == "cuda":
        if cuda_available():
            return "cuda"
        if logger is not None:
            warn(logger, "cuda_unavailable", fallback="cpu")
        return "cpu"

    if not wanted or wanted == "auto":
        return "cuda" if cuda_available() else "cpu"

    return wanted


def _to_numpy(wav: Any) -> np.ndarray:
    if hasattr(wav, "detach"):
        wav = wav.detach().float().cpu().numpy()
    return np.asarray(wav)


def waveforms_to_wav_bytes(waveforms: Sequence[Any], sample_rate: int) -> bytes:
    """
    Join the model's output segments into one mono 16-bit WAV buffer.

    int16 input is rescaled to [-1, 1]; float input that overshoots is
    peak-normalised rather than clipped.

    Raises:
        RuntimeError: If the model produced no samples.
    """
    parts = [_to_numpy(w).reshape(-1) for w in waveforms]
    wav = np.concatenate(parts) if parts else np.array([], dtype=np.float32)
    if wav.size == 0:
        raise RuntimeError("backend returned empty audio")

    if wav.dtype == np.int16:
        wav = wav.astype(np.float32) / 32768.0
    else:
        wav = wav.astype(np.float32)

    peak = float(np.abs(wav).max())
    if peak > 1.0:
        wav = wav / peak

    wav_bytes, _ = wav_bytes_from_float32(wav, sample_rate)
    return wav_bytes
