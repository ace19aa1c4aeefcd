"""
Voice records.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class VoiceKind(str, Enum):
    """
    How a voice's identity is obtained.

    BUILTIN   shipped description, rendered through voice design
    DESIGNED  user description, rendered through voice design
    CLONED    user reference audio
    PRESET    fixed backend speaker, no clone prompt involved
    """
    BUILTIN = "builtin"
    DESIGNED = "designed"
    CLONED = "cloned"
    PRESET = "preset"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


@dataclass
class VoiceRecord:
    """
    A named voice identity.

    ``source_reference`` is the reference audio path for cloned voices and
    the backend speaker id for presets; other kinds leave it unset.
    """
    name: str
    kind: VoiceKind
    description: Optional[str] = None
    source_reference: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def is_preset(self) -> bool:
        """Preset voices are rendered by speaker id and never have a clone prompt."""
        return self.kind is VoiceKind.PRESET

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form stored in the voice index and returned by the API."""
        return {
            "name": self.name,
            "kind": self.kind.value,
            "description": self.description,
            "source_reference": self.source_reference,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VoiceRecord":
        """
        Inverse of ``to_dict``.

        A missing ``created_at`` defaults to now and naive timestamps are read
        as UTC, so hand-edited index entries still load.

        Raises:
            KeyError: ``name`` or ``kind`` is missing.
            ValueError: ``kind`` is not a VoiceKind value.
        """
        created = data.get("created_at")
        created_at = datetime.fromisoformat(created) if created else _utcnow()
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            name=str(data["name"]),
            kind=VoiceKind(data["kind"]),
            description=data.get("description"),
            source_reference=data.get("source_reference"),
            created_at=created_at,
        )
