"""
Model variants of the Qwen3-TTS backend.

Clone prompts are tied to the variant that extracted them, so the slug is
part of every cache key, blob file name and container embedding path.
"""
from __future__ import annotations

import re
from typing import Dict

DEFAULT_VARIANT = "1.7b"

BASE_MODELS: Dict[str, str] = {
    "0.6b": "Qwen/Qwen3-TTS-12Hz-0.6B-Base",
    "1.7b": "Qwen/Qwen3-TTS-12Hz-1.7B-Base",
}

CUSTOM_VOICE_MODEL = "Qwen/Qwen3-TTS-12Hz-1.7B-CustomVoice"
VOICE_DESIGN_MODEL = "Qwen/Qwen3-TTS-12Hz-1.7B-VoiceDesign"

# Matches the "<variant>" part of a "<name>-<variant>.blob" file name.
VARIANT_SLUG_PATTERN = r"\d+(?:\.\d+)?b"

_SIZE_IN_ID = re.compile(r"(\d+(?:\.\d+)?)B", re.IGNORECASE)


def variant_slug(value: str) -> str:
    """
    Normalise a slug or a model id to a known slug.

    >>> variant_slug("1.7B")
    '1.7b'
    >>> variant_slug("Qwen/Qwen3-TTS-12Hz-0.6B-Base")
    '0.6b'

    Raises:
        ValueError: For anything that does not name a known variant.
    """
    text = (value or "").strip()
    if text.lower() in BASE_MODELS:
        return text.lower()
    match = _SIZE_IN_ID.search(text.rsplit("/", 1)[-1])
    if match and f"{match.group(1)}b" in BASE_MODELS:
        return f"{match.group(1)}b"
    raise ValueError(f"unknown model variant: {value!r} (expected one of {', '.join(BASE_MODELS)})")


def base_model_id(variant: str) -> str:
    """
    Hugging Face id of the Base checkpoint for a slug or model id.

    >>> base_model_id("0.6b")
    'Qwen/Qwen3-TTS-12Hz-0.6B-Base'
    """
    return BASE_MODELS[variant_slug(variant)]
