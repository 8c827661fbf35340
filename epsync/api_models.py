from __future__ import annotations

from pydantic import BaseModel, Field

from .models import CycleReport, ServiceResult


class ServiceResultOut(BaseModel):
    namespace: str
    name: str
    ok: bool
    action: str | None = Field(None, description="created|updated")
    addresses: int = Field(0, ge=0, description="Addresses published in the Endpoints subset")
    node_errors: list[str] = Field(default_factory=list, description="Nodes skipped for lack of an address")
    error: str | None = None

    @classmethod
    def from_result(cls, r: ServiceResult) -> "ServiceResultOut":
        return cls(
            namespace=r.namespace,
            name=r.name,
            ok=r.ok,
            action=r.action,
            addresses=r.addresses,
            node_errors=list(r.node_errors),
            error=r.error,
        )


class StatusResponse(BaseModel):
    cycles: int = Field(..., ge=1, description="Cycles completed since startup")
    ok: bool
    started_at: str
    finished_at: str | None = None
    error: str | None = Field(None, description="Set when the managed service list could not be built")
    services: list[ServiceResultOut] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: CycleReport, cycles: int) -> "StatusResponse":
        return cls(
            cycles=cycles,
            ok=report.ok,
            started_at=report.started_at,
            finished_at=report.finished_at,
            error=report.error,
            services=[ServiceResultOut.from_result(r) for r in report.results],
        )


class EventOut(BaseModel):
    id: int
    ts: str
    level: str
    namespace: str | None = None
    service: str | None = None
    message: str
