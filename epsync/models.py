from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class ServicePort:
    name: str
    port: int
    protocol: str = "TCP"


@dataclass(frozen=True)
class ManagedService:
    """A service whose Endpoints object is kept in sync with a node selector."""

    namespace: str
    name: str
    node_selector: str
    ports: tuple[ServicePort, ...] = ()
    labels: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def key(self) -> tuple[str, str]:
        return self.namespace, self.name

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class MachineAddress:
    ip: str
    node_name: str
    node_uid: str | None = None


@dataclass(frozen=True)
class EndpointSubset:
    ports: tuple[ServicePort, ...]
    addresses: tuple[MachineAddress, ...]


@dataclass(frozen=True)
class DiscoveryRecord:
    """Desired content of one Endpoints object.

    `resource_version` is only set right before a replace, copied from the
    object currently stored.
    """

    namespace: str
    name: str
    labels: dict[str, str] = field(default_factory=dict, hash=False)
    subsets: tuple[EndpointSubset, ...] = ()
    resource_version: str | None = None

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ServiceResult:
    namespace: str
    name: str
    ok: bool
    action: str | None = None  # created|updated
    addresses: int = 0
    node_errors: tuple[str, ...] = ()
    error: str | None = None

    @property
    def ref(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass
class CycleReport:
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None
    results: list[ServiceResult] = field(default_factory=list)
    error: str | None = None  # set when the service list itself could not be built

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)
