from __future__ import annotations

import dataclasses
import logging
import sqlite3
from typing import Any

from . import endpoints
from .db import EventLog
from .errors import ApplyError, EpsyncError, SourceError
from .kube_ops import API_ERRORS, DEFAULT_REQUEST_TIMEOUT, api_status, describe, is_not_found
from .models import CycleReport, DiscoveryRecord, ManagedService, ServiceResult, utc_now
from .resolver import NodeAddressResolver
from .sources import ServiceSource

logger = logging.getLogger(__name__)


class Reconciler:
    """Makes the stored Endpoints objects match the current node set.

    The desired state is recomputed from scratch on every call; nothing is
    carried over between cycles except what the API server stores.
    """

    def __init__(
        self,
        core_api: Any,
        source: ServiceSource,
        resolver: NodeAddressResolver | None = None,
        events: EventLog | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        self.core_api = core_api
        self.source = source
        self.request_timeout = request_timeout
        self.resolver = resolver or NodeAddressResolver(core_api, request_timeout)
        self.events = events

    def apply(self, record: DiscoveryRecord) -> str:
        """Create the Endpoints object, or replace it in full.

        The resourceVersion of the stored object is carried on the replace so
        a concurrent writer makes the API server reject it (409).
        Returns "created" or "updated".
        """
        try:
            existing = self.core_api.read_namespaced_endpoints(
                record.name, record.namespace, _request_timeout=self.request_timeout
            )
        except API_ERRORS as e:
            if not is_not_found(e):
                raise ApplyError(
                    record.ref, f"retrieving existing endpoints object failed: {describe(e)}", api_status(e)
                ) from e
            existing = None

        if existing is None:
            try:
                self.core_api.create_namespaced_endpoints(
                    record.namespace, endpoints.to_v1_endpoints(record), _request_timeout=self.request_timeout
                )
            except API_ERRORS as e:
                raise ApplyError(record.ref, f"creating endpoints object failed: {describe(e)}", api_status(e)) from e
            return "created"

        record = dataclasses.replace(record, resource_version=existing.metadata.resource_version)
        try:
            self.core_api.replace_namespaced_endpoints(
                record.name,
                record.namespace,
                endpoints.to_v1_endpoints(record),
                _request_timeout=self.request_timeout,
            )
        except API_ERRORS as e:
            status = api_status(e)
            reason = "conflict, object was modified concurrently" if status == 409 else describe(e)
            raise ApplyError(record.ref, f"updating endpoints object failed: {reason}", status) from e
        return "updated"

    def sync_service(self, service: ManagedService) -> ServiceResult:
        logger.debug("starting sync of %s (selector %r)", service.ref, service.node_selector)
        try:
            addresses, node_errors = self.resolver.resolve(service.node_selector)
            for err in node_errors:
                logger.warning("%s: %s", service.ref, err)
                self._event("WARN", str(err), service)

            record = endpoints.build(service, addresses)
            action = self.apply(record)
        except EpsyncError as e:
            logger.error("sync of %s failed: %s", service.ref, e)
            self._event("ERROR", str(e), service)
            return ServiceResult(service.namespace, service.name, ok=False, error=str(e))
        except Exception as e:
            logger.exception("sync of %s failed unexpectedly", service.ref)
            self._event("ERROR", f"unexpected error: {type(e).__name__}: {e}", service)
            return ServiceResult(service.namespace, service.name, ok=False, error=f"{type(e).__name__}: {e}")

        msg = f"{action} endpoints with {len(addresses)} addresses and {len(service.ports)} ports"
        logger.info("%s: %s", service.ref, msg)
        self._event("INFO", msg, service)
        return ServiceResult(
            service.namespace,
            service.name,
            ok=True,
            action=action,
            addresses=len(addresses),
            node_errors=tuple(e.node_name for e in node_errors),
        )

    def run_cycle(self) -> CycleReport:
        """One pass over every managed service.

        Services are independent: a failing one is reported and the rest are
        still synced.
        """
        report = CycleReport()
        try:
            services = self.source.list()
        except SourceError as e:
            logger.error("sync cycle aborted: %s", e)
            self._event("ERROR", f"sync cycle aborted: {e}")
            report.error = str(e)
            report.finished_at = utc_now()
            return report

        for svc in services:
            report.results.append(self.sync_service(svc))

        report.finished_at = utc_now()
        logger.info("sync cycle finished: %d services synced, %d failed", report.succeeded, report.failed)
        return report

    def _event(self, level: str, message: str, service: ManagedService | None = None) -> None:
        if self.events is None:
            return
        try:
            self.events.log_event(
                level,
                message,
                namespace=service.namespace if service else None,
                service=service.name if service else None,
            )
        except sqlite3.Error:
            logger.exception("writing sync event failed")
