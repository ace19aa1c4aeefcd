"""
Error taxonomy shared by every voxkit layer.

All errors derive from VoxkitError, which carries a machine-readable code
and renders the same ``{"ok": false, ...}`` payload the HTTP layer returns.

Propagation rules:
    - VoiceNotFound, CloneExtractionFailed, SynthesisFailed,
      ContainerImportFailed, ContainerUpdateFailed and ModelUnavailable
      reach the caller.
    - CacheWriteWarning is only ever constructed to be logged; cache
      persistence failures never fail a request.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Error codes used in VoxkitError and in API error responses."""
    VOICE_NOT_FOUND = "VOICE_NOT_FOUND"
    CLONE_EXTRACTION_FAILED = "CLONE_EXTRACTION_FAILED"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    CONTAINER_IMPORT_FAILED = "CONTAINER_IMPORT_FAILED"
    CONTAINER_UPDATE_FAILED = "CONTAINER_UPDATE_FAILED"
    CACHE_WRITE_WARNING = "CACHE_WRITE_WARNING"
    MODEL_UNAVAILABLE = "MODEL_UNAVAILABLE"
    AUDIO_CONCATENATION_FAILED = "AUDIO_CONCATENATION_FAILED"
    AUDIO_EXPORT_FAILED = "AUDIO_EXPORT_FAILED"
    VOICE_INDEX_INVALID = "VOICE_INDEX_INVALID"
    INVALID_INPUT = "INVALID_INPUT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class VoxkitError(Exception):
    """
    Base exception for voxkit errors.

    Attributes:
        message: Human-readable error message.
        code: One of the ErrorCode constants.
        details: Extra context (voice name, chunk index, path, ...).
    """

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Error payload used by the HTTP API and the CLI ``--json`` output."""
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class VoiceNotFound(VoxkitError):
    """No custom or built-in voice matches the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Voice not found: {name}", ErrorCode.VOICE_NOT_FOUND, {"voice": name})


class CloneExtractionFailed(VoxkitError):
    """Every clone-prompt tier missed and cold derivation failed."""

    def __init__(self, detail: str, voice: Optional[str] = None, variant: Optional[str] = None):
        self.detail = detail
        details: Dict[str, Any] = {"detail": detail}
        if voice is not None:
            details["voice"] = voice
        if variant is not None:
            details["variant"] = variant
        super().__init__(f"Clone prompt extraction failed: {detail}", ErrorCode.CLONE_EXTRACTION_FAILED, details)


class SynthesisFailed(VoxkitError):
    """The backend failed on one chunk; ``chunk_index`` is zero-based."""

    def __init__(self, chunk_index: int, detail: str):
        self.chunk_index = chunk_index
        self.detail = detail
        super().__init__(
            f"Failed to synthesize chunk {chunk_index + 1}: {detail}",
            ErrorCode.SYNTHESIS_FAILED,
            {"chunk_index": chunk_index, "detail": detail},
        )


class ContainerImportFailed(VoxkitError):
    def __init__(self, detail: str, path: Optional[str] = None):
        self.detail = detail
        details: Dict[str, Any] = {"detail": detail}
        if path is not None:
            details["path"] = path
        super().__init__(f"Voice container import failed: {detail}", ErrorCode.CONTAINER_IMPORT_FAILED, details)


class ContainerUpdateFailed(VoxkitError):
    def __init__(self, detail: str, path: Optional[str] = None):
        self.detail = detail
        details: Dict[str, Any] = {"detail": detail}
        if path is not None:
            details["path"] = path
        super().__init__(f"Voice container update failed: {detail}", ErrorCode.CONTAINER_UPDATE_FAILED, details)


class CacheWriteWarning(VoxkitError):
    """A clone-prompt cache write failed. Logged via ``to_dict()``, never raised to callers."""

    def __init__(self, detail: str, path: Optional[str] = None):
        self.detail = detail
        details: Dict[str, Any] = {"detail": detail}
        if path is not None:
            details["path"] = path
        super().__init__(f"Clone prompt cache write failed: {detail}", ErrorCode.CACHE_WRITE_WARNING, details)


class ModelUnavailable(VoxkitError):
    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Model unavailable: {detail}", ErrorCode.MODEL_UNAVAILABLE, {"detail": detail})


class AudioConcatenationError(VoxkitError):
    def __init__(self, message: str, segment_index: Optional[int] = None):
        self.segment_index = segment_index
        details = {"segment_index": segment_index} if segment_index is not None else None
        super().__init__(message, ErrorCode.AUDIO_CONCATENATION_FAILED, details)


class AudioExportFailed(VoxkitError):
    def __init__(self, detail: str, fmt: Optional[str] = None):
        self.detail = detail
        details: Dict[str, Any] = {"detail": detail}
        if fmt is not None:
            details["format"] = fmt
        super().__init__(f"Audio export failed: {detail}", ErrorCode.AUDIO_EXPORT_FAILED, details)


class VoiceIndexError(VoxkitError):
    def __init__(self, detail: str, path: Optional[str] = None):
        details: Dict[str, Any] = {"detail": detail}
        if path is not None:
            details["path"] = path
        super().__init__(f"Voice index unreadable: {detail}", ErrorCode.VOICE_INDEX_INVALID, details)


class InvalidInput(VoxkitError):
    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else None
        super().__init__(message, ErrorCode.INVALID_INPUT, details)
