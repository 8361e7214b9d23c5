"""Aggregate readiness for the file vault runtime."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from resources.substrates.filesystem import FilesystemHealthStatus


@dataclass(frozen=True)
class HealthReport:
    """Readiness of the metadata and blob substrates."""

    metadata_ready: bool
    blob_ready: bool
    detail: str

    @property
    def ready(self) -> bool:
        """Return True when every substrate is ready."""
        return self.metadata_ready and self.blob_ready


def evaluate_health(
    *,
    metadata_probe: Callable[[], bool],
    blob_probe: Callable[[], FilesystemHealthStatus],
) -> HealthReport:
    """Probe both substrates and summarize the outcome."""
    metadata_ready = metadata_probe()
    blob_status = blob_probe()
    details = []
    if not metadata_ready:
        details.append("metadata store unavailable")
    if not blob_status.ready:
        details.append(blob_status.detail)
    return HealthReport(
        metadata_ready=metadata_ready,
        blob_ready=blob_status.ready,
        detail="; ".join(details) or "ok",
    )


def register_health_routes(
    *,
    app: FastAPI,
    metadata_probe: Callable[[], bool],
    blob_probe: Callable[[], FilesystemHealthStatus],
) -> None:
    """Expose ``GET /health`` returning 200 when ready and 503 otherwise."""

    @app.get("/health")
    def health() -> JSONResponse:
        report = evaluate_health(metadata_probe=metadata_probe, blob_probe=blob_probe)
        return JSONResponse(
            status_code=200 if report.ready else 503,
            content={
                "ready": report.ready,
                "metadataReady": report.metadata_ready,
                "blobReady": report.blob_ready,
                "detail": report.detail,
            },
        )
