"""
PCM audio codec and format helpers.

Every buffer voxkit produces natively is a canonical 44-byte-header WAV:

    0-3    "RIFF"
    4-7    total size - 8 (little endian)
    8-11   "WAVE"
    12-15  "fmt "
    16-35  PCM format chunk (tag 1, mono, rate, byte rate, align, 16 bits)
    36-39  "data"
    40-43  payload size
    44-    little-endian int16 samples

``build_wav`` and ``concatenate_wavs`` are pure byte transforms. Decoding
arbitrary reference audio and encoding to compressed formats goes through
soundfile (libsndfile).
"""
from __future__ import annotations

import io
import struct
from typing import Dict, Sequence, Tuple, Union

import numpy as np
import soundfile as sf

from voxkit.core.errors import AudioConcatenationError, AudioExportFailed
from voxkit.core.logging import debug, get_logger
from voxkit.utils.timeit import timeit

_LOG = get_logger("voxkit.audio")

WAV_HEADER_SIZE = 44
DEFAULT_SAMPLE_RATE = 24000

_CHANNELS = 1
_BITS_PER_SAMPLE = 16

# format name -> (soundfile container, subtype)
_ENCODERS = {
    "flac": ("FLAC", "PCM_16"),
    "ogg": ("OGG", "VORBIS"),
}


def wav_header(data_size: int, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Return the 44-byte mono 16-bit PCM header for ``data_size`` payload bytes."""
    block_align = _CHANNELS * _BITS_PER_SAMPLE // 8
    byte_rate = sample_rate * block_align
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        1,
        _CHANNELS,
        sample_rate,
        byte_rate,
        block_align,
        _BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def build_wav(samples: Union[Sequence[int], np.ndarray], sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """
    Encode int16 samples as a WAV buffer.

    Empty input yields a header-only buffer whose data chunk size is zero.
    """
    payload = np.asarray(samples, dtype="<i2").reshape(-1).tobytes()
    return wav_header(len(payload), sample_rate) + payload


def concatenate_wavs(buffers: Sequence[bytes], sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """
    Join WAV buffers into one, stripping each header and writing a new one.

    A single buffer is returned unchanged. The per-segment sample rate is
    not checked; ``sample_rate`` is only used for the new header.

    Raises:
        AudioConcatenationError: On an empty list or a segment that is not
            longer than the 44-byte header.
    """
    if not buffers:
        raise AudioConcatenationError("No WAV segments to concatenate")

    if len(buffers) == 1:
        return buffers[0]

    payload = bytearray()
    for index, buf in enumerate(buffers):
        if len(buf) <= WAV_HEADER_SIZE:
            raise AudioConcatenationError(
                f"WAV segment {index} is too short ({len(buf)} bytes). "
                f"Expected at least {WAV_HEADER_SIZE + 1} bytes.",
                segment_index=index,
            )
        payload += buf[WAV_HEADER_SIZE:]

    out = wav_header(len(payload), sample_rate) + bytes(payload)
    debug(_LOG, "wav_concatenated", segments=len(buffers), bytes=len(out))
    return out


def parse_wav(wav_bytes: bytes) -> Tuple[np.ndarray, int]:
    """
    Decode a mono 16-bit PCM WAV buffer into (int16 samples, sample rate).

    Chunks other than ``fmt `` and ``data`` are skipped, so headers written by
    other tools parse as well as our own.

    Raises:
        ValueError: If the buffer is not RIFF/WAVE PCM 16-bit.
    """
    if len(wav_bytes) < 12 or wav_bytes[0:4] != b"RIFF" or wav_bytes[8:12] != b"WAVE":
        raise ValueError("not a RIFF/WAVE buffer")

    sample_rate = None
    offset = 12
    while offset + 8 <= len(wav_bytes):
        chunk_id = wav_bytes[offset:offset + 4]
        (chunk_size,) = struct.unpack_from("<I", wav_bytes, offset + 4)
        body = offset + 8
        if chunk_id == b"fmt ":
            fmt_tag, channels, sample_rate, _, _, bits = struct.unpack_from("<HHIIHH", wav_bytes, body)
            if fmt_tag != 1 or bits != _BITS_PER_SAMPLE or channels != _CHANNELS:
                raise ValueError(f"unsupported WAV format (tag={fmt_tag}, channels={channels}, bits={bits})")
        elif chunk_id == b"data":
            if sample_rate is None:
                raise ValueError("data chunk before fmt chunk")
            data = wav_bytes[body:body + chunk_size]
            return np.frombuffer(data[: len(data) - len(data) % 2], dtype="<i2").astype(np.int16), sample_rate
        offset = body + chunk_size + (chunk_size & 1)

    raise ValueError("WAV buffer has no data chunk")


def wav_sample_rate(wav_bytes: bytes, default: int = DEFAULT_SAMPLE_RATE) -> int:
    """Sample rate from a canonical header, or ``default`` when the buffer is too short."""
    if len(wav_bytes) < WAV_HEADER_SIZE or wav_bytes[0:4] != b"RIFF":
        return default
    return struct.unpack_from("<I", wav_bytes, 24)[0]


def pcm16_from_float32(waveform: np.ndarray) -> np.ndarray:
    """Clamp to [-1, 1] and scale to int16, truncating toward zero."""
    wav = np.clip(np.asarray(waveform, dtype=np.float32).reshape(-1), -1.0, 1.0)
    return (wav * 32767.0).astype(np.int16)


def float32_from_pcm16(samples: np.ndarray) -> np.ndarray:
    """Inverse of ``pcm16_from_float32`` (up to truncation)."""
    return np.asarray(samples, dtype=np.float32) / 32767.0


def wav_bytes_from_float32(waveform: np.ndarray, sample_rate: int) -> Tuple[bytes, Dict[str, float]]:
    """
    Encode a float waveform in [-1, 1] as a canonical WAV buffer.

    Returns:
        (wav_bytes, timings) with the encode duration under ``wav_encode``.
    """
    with timeit("wav_encode") as t:
        out = build_wav(pcm16_from_float32(waveform), sample_rate)
    return out, {"wav_encode": t.seconds}


def wav_bytes_to_float32(audio_bytes: bytes) -> Tuple[np.ndarray, int]:
    """
    Decode any libsndfile-readable audio (WAV, FLAC, OGG, ...) to mono float32.

    Multi-channel input is averaged down to one channel.
    """
    wav, sr = sf.read(io.BytesIO(audio_bytes), dtype="float32")
    if wav.ndim > 1:
        wav = wav.mean(axis=1)
    return np.asarray(wav, dtype=np.float32), int(sr)


def encode_audio(wav_bytes: bytes, fmt: str = "wav") -> bytes:
    """
    Re-encode a canonical WAV buffer into ``fmt`` (wav, flac or ogg).

    ``wav`` is returned as-is.

    Raises:
        AudioExportFailed: For an unknown format or an encoder failure.
    """
    fmt = fmt.lower()
    if fmt == "wav":
        return wav_bytes
    if fmt not in _ENCODERS:
        raise AudioExportFailed(f"unsupported audio format: {fmt}", fmt=fmt)

    container, subtype = _ENCODERS[fmt]
    try:
        samples, sample_rate = parse_wav(wav_bytes)
        buf = io.BytesIO()
        sf.write(buf, float32_from_pcm16(samples), sample_rate, format=container, subtype=subtype)
    except (ValueError, RuntimeError, sf.LibsndfileError) as e:
        raise AudioExportFailed(str(e), fmt=fmt) from e
    return buf.getvalue()
