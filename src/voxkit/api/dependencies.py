"""
FastAPI dependency providers.

Settings are loaded once per process and the SynthesisService is a
process-wide singleton, so every request shares one backend (one set of
loaded models) and one clone-prompt cache.
"""
from __future__ import annotations

from functools import lru_cache

from voxkit.core.config import Settings, load_settings
from voxkit.services.synthesis_service import SynthesisService, get_service


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings from VOXKIT_CONFIG (or config/settings.yaml), loaded once."""
    return load_settings()


def get_synthesis_service() -> SynthesisService:
    """Shared SynthesisService; override in tests via ``app.dependency_overrides``."""
    return get_service(get_settings())
