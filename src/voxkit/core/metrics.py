"""
Prometheus metrics for voxkit.

Metrics live on a private CollectorRegistry so that embedding voxkit in a
larger process never collides with the host's default registry.

Exported series:
    voxkit_synthesis_requests_total{status}
    voxkit_synthesis_duration_seconds{voice_kind}
    voxkit_chunks_synthesized_total
    voxkit_audio_bytes_total
    voxkit_clone_prompt_lookups_total{tier}
    voxkit_clone_prompt_derivations_total{source}
    voxkit_cache_write_warnings_total
    voxkit_container_updates_total{target,status}
    voxkit_backend_loaded{engine}
"""
from __future__ import annotations

from typing import Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class VoxkitMetrics:
    """
    Metric collection for the synthesis pipeline and the clone-prompt cache.

    Example:
        >>> from voxkit.core.metrics import metrics
        >>> metrics.record_lookup("memory")
        >>> body, content_type = metrics.get_metrics_response()
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "voxkit_synthesis_requests_total",
            "Total synthesis requests",
            ["status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "voxkit_synthesis_duration_seconds",
            "End-to-end synthesis duration in seconds",
            ["voice_kind"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self._registry,
        )
        self._chunks_total = Counter(
            "voxkit_chunks_synthesized_total",
            "Total text chunks synthesized",
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "voxkit_audio_bytes_total",
            "Total audio bytes produced",
            registry=self._registry,
        )
        self._lookups_total = Counter(
            "voxkit_clone_prompt_lookups_total",
            "Clone prompt lookups by the tier that served them",
            ["tier"],
            registry=self._registry,
        )
        self._derivations_total = Counter(
            "voxkit_clone_prompt_derivations_total",
            "Clone prompts derived by the backend",
            ["source"],
            registry=self._registry,
        )
        self._cache_write_warnings = Counter(
            "voxkit_cache_write_warnings_total",
            "Failed best-effort clone prompt cache writes",
            registry=self._registry,
        )
        self._container_updates = Counter(
            "voxkit_container_updates_total",
            "Voice container rewrites",
            ["target", "status"],
            registry=self._registry,
        )
        self._backend_loaded = Gauge(
            "voxkit_backend_loaded",
            "Whether the synthesis backend has loaded a model (1) or not (0)",
            ["engine"],
            registry=self._registry,
        )

    def record_request(self, status: str, duration: float, voice_kind: str = "unknown", audio_bytes: int = 0) -> None:
        """
        Record a finished synthesis request.

        Args:
            status: "success" or "error".
            duration: Wall-clock seconds for the whole request.
            voice_kind: Kind of the resolved voice, "unknown" if resolution failed.
            audio_bytes: Size of the returned audio; 0 for failed requests.
        """
        self._requests_total.labels(status=status).inc()
        self._request_duration.labels(voice_kind=voice_kind).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_chunk(self) -> None:
        """Count one chunk rendered by the backend."""
        self._chunks_total.inc()

    def record_lookup(self, tier: str) -> None:
        """Count a clone-prompt lookup served by ``tier`` (memory, disk, legacy, container, derived)."""
        self._lookups_total.labels(tier=tier).inc()

    def record_derivation(self, source: str) -> None:
        """Count a prompt extracted by the backend; ``source`` is container, reference or design."""
        self._derivations_total.labels(source=source).inc()

    def record_cache_write_warning(self) -> None:
        """Count a failed best-effort disk or container write."""
        self._cache_write_warnings.inc()

    def record_container_update(self, target: str, ok: bool) -> None:
        """Count a .vox rewrite; ``target`` is clone_prompt or sample_audio."""
        self._container_updates.labels(target=target, status="ok" if ok else "error").inc()

    def set_backend_loaded(self, engine: str, loaded: bool) -> None:
        """Publish whether ``engine`` currently holds a model in memory."""
        self._backend_loaded.labels(engine=engine).set(1 if loaded else 0)

    def get_metrics_response(self) -> Tuple[bytes, str]:
        """
        Render the registry for the /metrics endpoint.

        Returns:
            (body, content_type) in the Prometheus text exposition format.
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


metrics = VoxkitMetrics()
