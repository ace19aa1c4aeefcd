"""
Input validation for voice names and synthesis text.

Voice names become file names inside the voices directory, so anything
that could escape it or collide with archive namespaces is rejected.
"""
from __future__ import annotations

import re
from typing import Optional

from voxkit.core.errors import InvalidInput
from voxkit.tts.variants import VARIANT_SLUG_PATTERN

MAX_VOICE_NAME_CHARS = 100
MAX_TEXT_CHARS = 100_000
MAX_DESCRIPTION_CHARS = 2000

_FORBIDDEN = ("/", "\\", "\x00")

# "<name>-0.6b" would share "<name>-0.6b.blob" with the 0.6b blob of "<name>".
_VARIANT_SUFFIX = re.compile(rf"-{VARIANT_SLUG_PATTERN}$", re.IGNORECASE)


def validate_voice_name(name: Optional[str]) -> str:
    """
    Return the trimmed name or raise InvalidInput.

    >>> validate_voice_name("  narrator ")
    'narrator'
    """
    if name is None or not name.strip():
        raise InvalidInput("Voice name is required", field="name")
    name = name.strip()
    if len(name) > MAX_VOICE_NAME_CHARS:
        raise InvalidInput(
            f"Voice name too long ({len(name)} chars, max {MAX_VOICE_NAME_CHARS})",
            field="name",
        )
    if name in (".", "..") or name.startswith(".") or any(c in name for c in _FORBIDDEN):
        raise InvalidInput(f"Invalid voice name: {name!r}", field="name")
    if _VARIANT_SUFFIX.search(name):
        raise InvalidInput(
            f"Voice name must not end with a model variant suffix: {name!r}",
            field="name",
        )
    return name


def validate_text(text: Optional[str]) -> str:
    """Reject empty or oversized synthesis text; the text itself is returned untouched."""
    if text is None or not text.strip():
        raise InvalidInput("Text is required", field="text")
    if len(text) > MAX_TEXT_CHARS:
        raise InvalidInput(f"Text too long ({len(text)} chars, max {MAX_TEXT_CHARS})", field="text")
    return text


def validate_description(description: Optional[str]) -> str:
    """Return the trimmed voice description or raise InvalidInput."""
    if description is None or not description.strip():
        raise InvalidInput("Voice description is required", field="description")
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_CHARS:
        raise InvalidInput(
            f"Voice description too long ({len(description)} chars, max {MAX_DESCRIPTION_CHARS})",
            field="description",
        )
    return description
