"""
Per-chunk generation context handed to the synthesis backend.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict

_SEPARATORS = re.compile(r"[\s\-]+")
_REPEATED_UNDERSCORE = re.compile(r"_+")


def to_snake_case(key: str) -> str:
    """
    Lower-snake-case a metadata key.

    >>> to_snake_case("speakingRate")
    'speaking_rate'
    >>> to_snake_case("XMLParser")
    'xml_parser'
    >>> to_snake_case("voice - Style")
    'voice_style'
    """
    text = _SEPARATORS.sub("_", key.strip())
    out = []
    for i, ch in enumerate(text):
        if ch.isupper():
            prev = text[i - 1] if i > 0 else ""
            nxt = text[i + 1] if i + 1 < len(text) else ""
            # Word boundary: aB, or the last capital of an acronym (XMLParser -> xml_parser)
            if prev and prev != "_" and (prev.islower() or prev.isdigit() or (prev.isupper() and nxt.islower())):
                out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return _REPEATED_UNDERSCORE.sub("_", "".join(out)).strip("_")


@dataclass(frozen=True)
class GenerationContext:
    """
    One chunk of text plus free-form metadata for the backend.

    Metadata keys are normalized to lower snake case on construction; when
    two keys collide after normalization the later one wins.
    """
    phrase: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        normalized = {to_snake_case(str(k)): v for k, v in self.metadata.items()}
        object.__setattr__(self, "metadata", normalized)

    def with_metadata(self, **extra: Any) -> "GenerationContext":
        merged = dict(self.metadata)
        merged.update(extra)
        return GenerationContext(self.phrase, merged)
