"""
Request and response models for the HTTP API.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from voxkit.voices.models import VoiceRecord


class TTSRequest(BaseModel):
    """
    Body of ``POST /v1/tts``.

    Example:
        {"text": "Hello there.", "voice": "narrator", "format": "wav"}
    """
    text: str = Field(..., min_length=1)
    voice: Optional[str] = None
    language: Optional[str] = None
    variant: Optional[str] = Field(None, description="Model variant slug, e.g. 0.6b or 1.7b")
    format: Literal["wav", "flac", "ogg"] = "wav"


class DesignVoiceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)


class CloneVoiceRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    reference_path: str = Field(..., min_length=1, description="Path of the reference audio on the server")
    description: Optional[str] = None


class VoiceInfo(BaseModel):
    name: str
    kind: str
    description: Optional[str] = None
    source_reference: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_record(cls, record: VoiceRecord) -> "VoiceInfo":
        """Response model for a catalog record."""
        return cls(
            name=record.name,
            kind=record.kind.value,
            description=record.description,
            source_reference=record.source_reference,
            created_at=record.created_at,
        )


class VoiceList(BaseModel):
    voices: List[VoiceInfo]


class DeleteResult(BaseModel):
    ok: bool = True
    deleted: bool
