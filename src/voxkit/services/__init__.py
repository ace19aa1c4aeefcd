"""
Service layer between the API/CLI surfaces and the synthesis pipeline.
"""
from .synthesis_service import (
    SynthesisService,
    SynthesizeRequest,
    SynthesizeResult,
    get_service,
    reset_service,
)

__all__ = [
    "SynthesisService",
    "SynthesizeRequest",
    "SynthesizeResult",
    "get_service",
    "reset_service",
]
