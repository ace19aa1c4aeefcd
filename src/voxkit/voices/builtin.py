"""
Voices shipped with voxkit.

Order matters: the first entry is the default voice when a request names
none. Preset voices map onto speakers baked into the CustomVoice model and
need no clone prompt; the designed built-ins are rendered from their
description on first use and cached like any custom voice.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Tuple

from .models import VoiceKind, VoiceRecord

_SHIPPED = datetime(2001, 1, 1, tzinfo=timezone.utc)


def _preset(name: str, speaker: str, description: str) -> VoiceRecord:
    return VoiceRecord(
        name=name,
        kind=VoiceKind.PRESET,
        description=description,
        source_reference=speaker,
        created_at=_SHIPPED,
    )


def _designed(name: str, description: str) -> VoiceRecord:
    return VoiceRecord(name=name, kind=VoiceKind.BUILTIN, description=description, created_at=_SHIPPED)


BUILTIN_VOICES: Tuple[VoiceRecord, ...] = (
    _preset("ryan", "ryan", "Dynamic male voice with strong rhythmic drive"),
    _preset("aiden", "aiden", "Sunny American male voice with clear midrange"),
    _preset("vivian", "vivian", "Bright, slightly edgy young female voice"),
    _preset("serena", "serena", "Warm, gentle young female voice"),
    _preset("anna", "ono_anna", "Playful Japanese female voice with light timbre"),
    _preset("sohee", "sohee", "Warm Korean female voice with rich emotion"),
    _designed(
        "narrator",
        "A calm, mature male narrator with a low, even pitch and measured pacing, "
        "suited to audiobooks and documentaries.",
    ),
    _designed(
        "storyteller",
        "An expressive middle-aged female storyteller with a warm timbre, "
        "lively intonation and clear articulation.",
    ),
)
