from __future__ import annotations

from fastapi import FastAPI, HTTPException, Query, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api_models import EventOut, StatusResponse
from .db import EventLog
from .runtime import SyncState


def create_app(state: SyncState, events: EventLog | None = None) -> FastAPI:
    """HTTP listener: process metrics plus read-only sync status."""
    app = FastAPI(title="Node Endpoints Syncer")

    # Default registry: process, platform and GC collectors only.
    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse)
    def status() -> StatusResponse:
        report, cycles = state.snapshot()
        if report is None:
            raise HTTPException(status_code=503, detail="no sync completed yet")
        return StatusResponse.from_report(report, cycles)

    @app.get("/events", response_model=list[EventOut])
    def latest_events(limit: int = Query(100, ge=1, le=1000)) -> list[dict]:
        if events is None:
            return []
        return events.latest(limit)

    return app
