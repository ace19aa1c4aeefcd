"""
HTTP endpoints.

    POST   /v1/tts                    synthesize text, returns audio bytes
    GET    /v1/voices                 list custom and built-in voices
    POST   /v1/voices/design          register a designed voice
    POST   /v1/voices/clone           register a cloned voice
    POST   /v1/voices/import          install a .vox archive (raw body)
    GET    /v1/voices/{name}/vox      export a voice as a .vox archive
    DELETE /v1/voices/{name}          delete a custom voice
    GET    /health                    service and cache status
    GET    /metrics                   Prometheus metrics

Errors are returned as ``{"ok": false, "error": CODE, "message": ...}`` with
an HTTP status derived from the error code. Every response carries an
``X-Request-Id`` header matching the id in the logs.

Example:
    curl -X POST http://localhost:8000/v1/tts \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello there.", "voice": "narrator"}' \\
        --output speech.wav
"""
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool

from voxkit.api.dependencies import get_synthesis_service
from voxkit.api.schemas import (
    CloneVoiceRequest,
    DeleteResult,
    DesignVoiceRequest,
    TTSRequest,
    VoiceInfo,
    VoiceList,
)
from voxkit.core.errors import ErrorCode, VoxkitError
from voxkit.core.logging import error, get_logger, set_request_id
from voxkit.core.metrics import metrics
from voxkit.services.synthesis_service import SynthesisService, SynthesizeRequest

router = APIRouter()

_LOG = get_logger("voxkit.api")

_STATUS_MAP = {
    ErrorCode.VOICE_NOT_FOUND: 404,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.CONTAINER_IMPORT_FAILED: 422,
    ErrorCode.MODEL_UNAVAILABLE: 503,
}

_MEDIA_TYPES = {
    "wav": "audio/wav",
    "flac": "audio/flac",
    "ogg": "audio/ogg",
}


def _new_request_id() -> str:
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    return rid


def _error_response(e: Exception, rid: str) -> JSONResponse:
    if isinstance(e, VoxkitError):
        content = e.to_dict()
        status_code = _STATUS_MAP.get(e.code, 500)
    else:
        # Unexpected: log the detail, return a generic body.
        error(_LOG, "unhandled_error", error=str(e), error_type=type(e).__name__)
        content = {"ok": False, "error": ErrorCode.INTERNAL_ERROR, "message": "Internal server error"}
        status_code = 500
    content["request_id"] = rid
    return JSONResponse(status_code=status_code, content=content, headers={"X-Request-Id": rid})


@router.post("/v1/tts", response_class=Response)
def tts_v1(req: TTSRequest, service: SynthesisService = Depends(get_synthesis_service)):
    """
    Synthesize text with a named voice.

    Request body: TTSRequest (text, voice, language, variant, format).

    Returns audio bytes with headers:
        X-Request-Id: Correlation id, also present in every log line.
        X-Sample-Rate: Sample rate of the returned audio.
        X-Voice: Resolved voice name (the default voice when none was given).
        X-Chunks: Number of chunks rendered.
        X-Clone-Prompt-Tier: Cache tier that supplied the clone prompt,
            "none" for preset voices.

    Errors are JSON bodies from VoxkitError.to_dict() plus request_id:
    404 unknown voice, 400 invalid input, 503 model unavailable, 500 otherwise.
    """
    rid = _new_request_id()
    try:
        result = service.synthesize(
            SynthesizeRequest(
                text=req.text,
                voice=req.voice,
                language=req.language,
                variant=req.variant,
                format=req.format,
            ),
            rid,
        )
    except Exception as e:
        return _error_response(e, rid)

    headers = {
        "X-Request-Id": rid,
        "X-Sample-Rate": str(result.sample_rate),
        "X-Voice": result.voice,
        "X-Chunks": str(result.chunks),
        "X-Clone-Prompt-Tier": result.clone_prompt_tier or "none",
    }
    return Response(content=result.audio, media_type=_MEDIA_TYPES[result.format], headers=headers)


@router.get("/v1/voices", response_model=VoiceList)
def list_voices(service: SynthesisService = Depends(get_synthesis_service)):
    """Custom voices first, then built-ins not shadowed by a custom voice."""
    rid = _new_request_id()
    try:
        voices = [VoiceInfo.from_record(r) for r in service.list_voices()]
    except Exception as e:
        return _error_response(e, rid)
    return VoiceList(voices=voices)


@router.post("/v1/voices/design", response_model=VoiceInfo)
def design_voice(req: DesignVoiceRequest, service: SynthesisService = Depends(get_synthesis_service)):
    """Create (or replace) a voice from a text description."""
    rid = _new_request_id()
    try:
        record = service.design_voice(req.name, req.description)
    except Exception as e:
        return _error_response(e, rid)
    return VoiceInfo.from_record(record)


@router.post("/v1/voices/clone", response_model=VoiceInfo)
def clone_voice(req: CloneVoiceRequest, service: SynthesisService = Depends(get_synthesis_service)):
    """Create (or replace) a voice from a reference recording on the server."""
    rid = _new_request_id()
    try:
        record = service.clone_voice(req.name, req.reference_path, req.description)
    except Exception as e:
        return _error_response(e, rid)
    return VoiceInfo.from_record(record)


@router.post("/v1/voices/import", response_model=VoiceInfo)
async def import_voice(request: Request, name: Optional[str] = None, service: SynthesisService = Depends(get_synthesis_service)):
    """Install the ``.vox`` archive sent as the raw request body."""
    rid = _new_request_id()
    body = await request.body()
    try:
        record = await run_in_threadpool(service.import_voice, body, name)
    except Exception as e:
        return _error_response(e, rid)
    return VoiceInfo.from_record(record)


@router.get("/v1/voices/{name}/vox")
def export_voice(name: str, service: SynthesisService = Depends(get_synthesis_service)):
    """Download a voice as a ``.vox`` archive, deriving its clone prompt if needed."""
    rid = _new_request_id()
    try:
        data = service.export_voice(name)
    except Exception as e:
        return _error_response(e, rid)
    headers = {
        "X-Request-Id": rid,
        "Content-Disposition": f'attachment; filename="{name}.vox"',
    }
    return Response(content=data, media_type="application/zip", headers=headers)


@router.delete("/v1/voices/{name}", response_model=DeleteResult)
def delete_voice(name: str, service: SynthesisService = Depends(get_synthesis_service)):
    """Delete a custom voice; ``deleted`` is false when no such voice existed."""
    rid = _new_request_id()
    try:
        deleted = service.delete_voice(name)
    except Exception as e:
        return _error_response(e, rid)
    return DeleteResult(deleted=deleted)


@router.get("/health")
def health(service: SynthesisService = Depends(get_synthesis_service)):
    """
    Health check endpoint for load balancers and orchestration.

    Returns backend name, load state, model variant, device, backend
    capabilities, chunking settings and clone-prompt cache statistics.
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Exposes request counts and durations, chunks rendered, clone-prompt
    lookups per tier, derivations, cache write warnings, container updates
    and backend load state.
    """
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
