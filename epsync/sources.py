from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol

from .errors import ConfigError, SourceError
from .kube_ops import API_ERRORS, DEFAULT_REQUEST_TIMEOUT, describe
from .models import ManagedService, ServicePort
from .settings import Settings

logger = logging.getLogger(__name__)


class ServiceSource(Protocol):
    def list(self) -> list[ManagedService]: ...


def split_service_ref(value: str) -> tuple[str, str]:
    """Split a 'namespace/name' reference. Exactly one separator is accepted."""
    parts = value.split("/")
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise ConfigError(f'malformatted service reference {value!r}, must be in format "namespace/name"')
    return parts[0].strip(), parts[1].strip()


def service_ports(svc: Any) -> tuple[ServicePort, ...]:
    spec = getattr(svc, "spec", None)
    ports = []
    for p in (getattr(spec, "ports", None) or []):
        ports.append(ServicePort(name=p.name or "", port=int(p.port), protocol=p.protocol or "TCP"))
    return tuple(ports)


def managed_service(svc: Any, node_selector: str) -> ManagedService:
    meta = svc.metadata
    return ManagedService(
        namespace=meta.namespace,
        name=meta.name,
        node_selector=node_selector,
        ports=service_ports(svc),
        labels=dict(meta.labels or {}),
    )


class LabelQuerySource:
    """Manages every service labeled `<enabled_label>=true`.

    The node selector is read from an annotation on the service itself.
    """

    def __init__(
        self,
        core_api: Any,
        enabled_label: str,
        selector_annotation: str,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.core_api = core_api
        self.request_timeout = request_timeout
        self.enabled_label = enabled_label
        self.selector_annotation = selector_annotation

    @property
    def label_selector(self) -> str:
        return f"{self.enabled_label}=true"

    def list(self) -> list[ManagedService]:
        try:
            services = self.core_api.list_service_for_all_namespaces(
                label_selector=self.label_selector, _request_timeout=self.request_timeout
            )
        except API_ERRORS as e:
            raise SourceError(f"listing services with {self.label_selector!r} failed: {describe(e)}") from e

        out: list[ManagedService] = []
        for svc in services.items or []:
            meta = svc.metadata
            selector = (meta.annotations or {}).get(self.selector_annotation, "").strip()
            if not selector:
                logger.error(
                    "service %s/%s is labeled %s but has no %s annotation, skipping",
                    meta.namespace,
                    meta.name,
                    self.label_selector,
                    self.selector_annotation,
                )
                continue
            out.append(managed_service(svc, selector))
        return out


@dataclass(frozen=True)
class RoleConfig:
    role: str
    service_ref: str = ""
    node_selector: str = ""

    @property
    def configured(self) -> bool:
        return bool(self.service_ref.strip())


def validate_roles(roles: Iterable[RoleConfig]) -> list[tuple[RoleConfig, str, str]]:
    """Check every configured role's service reference; returns (role, namespace, name) targets."""
    targets: list[tuple[RoleConfig, str, str]] = []
    for r in roles:
        if not r.configured:
            continue
        try:
            namespace, name = split_service_ref(r.service_ref)
        except ConfigError as e:
            raise ConfigError(f"--{r.role}-service: {e}") from e
        targets.append((r, namespace, name))
    return targets


class StaticMappingSource:
    """Manages a fixed set of roles, each mapped to one service and one node selector."""

    def __init__(self, core_api: Any, roles: Iterable[RoleConfig], request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.core_api = core_api
        self.request_timeout = request_timeout
        self.targets = validate_roles(roles)

    def list(self) -> list[ManagedService]:
        out: list[ManagedService] = []
        for role, namespace, name in self.targets:
            try:
                svc = self.core_api.read_namespaced_service(name, namespace, _request_timeout=self.request_timeout)
            except API_ERRORS as e:
                logger.error("reading service %s/%s for %s failed: %s", namespace, name, role.role, describe(e))
                continue
            out.append(managed_service(svc, role.node_selector))
        return out


def build_source(
    mode: str,
    core_api: Any,
    cfg: Settings,
    roles: list[RoleConfig],
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> ServiceSource:
    """Pick the service source.

    mode: labels|static|auto. 'auto' uses the static mapping as soon as one
    role has a service configured.
    """
    if mode not in {"auto", "labels", "static"}:
        raise ConfigError(f"unknown source {mode!r}, expected auto|labels|static")
    if mode == "auto":
        mode = "static" if any(r.configured for r in roles) else "labels"
    if mode == "static":
        source = StaticMappingSource(core_api, roles, request_timeout)
        logger.info("Using static mapping for roles: %s", ", ".join(r.role for r, _, _ in source.targets) or "none")
        return source
    logger.info("Using services labeled %s=true", cfg.enabled_label)
    return LabelQuerySource(core_api, cfg.enabled_label, cfg.node_selector_annotation, request_timeout)
