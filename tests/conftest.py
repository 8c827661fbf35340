import copy
import sys

import pytest
from kubernetes import client
from kubernetes.client.exceptions import ApiException


def make_node(name, internal=None, external=None, labels=None, hostname=True):
    addresses = []
    if hostname:
        addresses.append(client.V1NodeAddress(address=name, type="Hostname"))
    if internal:
        addresses.append(client.V1NodeAddress(address=internal, type="InternalIP"))
    if external:
        addresses.append(client.V1NodeAddress(address=external, type="ExternalIP"))
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, uid=f"uid-{name}", labels=labels or {}),
        status=client.V1NodeStatus(addresses=addresses),
    )


def make_service(namespace, name, ports=(("http-metrics", 10251),), labels=None, annotations=None):
    return client.V1Service(
        metadata=client.V1ObjectMeta(namespace=namespace, name=name, labels=labels, annotations=annotations),
        spec=client.V1ServiceSpec(ports=[client.V1ServicePort(name=n, port=p, protocol="TCP") for n, p in ports]),
    )


def _selector_matches(labels, selector):
    labels = labels or {}
    for term in filter(None, (t.strip() for t in (selector or "").split(","))):
        if "=" in term:
            k, v = term.split("=", 1)
            if labels.get(k.strip()) != v.strip():
                return False
        elif term not in labels:
            return False
    return True


class FakeCoreApi:
    """In-memory stand-in for CoreV1Api covering the calls the syncer makes.

    replace_namespaced_endpoints enforces resourceVersion like the API server.
    Bodies are copied on the way in and out, as over the wire.
    """

    def __init__(self, nodes=(), services=()):
        self.nodes = list(nodes)
        self.services = {(s.metadata.namespace, s.metadata.name): s for s in services}
        self.endpoints = {}
        self.calls = []
        self.timeouts = []  # _request_timeout of every call
        self.failures = {}  # method name -> ApiException, or (method, key) -> ApiException
        self._rv = 0

    def _maybe_fail(self, method, key=None):
        exc = self.failures.get((method, key)) or self.failures.get(method)
        if exc is not None:
            raise exc

    def _next_rv(self):
        self._rv += 1
        return str(self._rv)

    # nodes / services

    def list_node(self, label_selector="", _request_timeout=None):
        self.timeouts.append(_request_timeout)
        self.calls.append(("list_node", label_selector))
        self._maybe_fail("list_node", label_selector)
        items = [n for n in self.nodes if _selector_matches(n.metadata.labels, label_selector)]
        return client.V1NodeList(items=items)

    def list_service_for_all_namespaces(self, label_selector="", _request_timeout=None):
        self.timeouts.append(_request_timeout)
        self.calls.append(("list_service_for_all_namespaces", label_selector))
        self._maybe_fail("list_service_for_all_namespaces")
        items = [s for s in self.services.values() if _selector_matches(s.metadata.labels, label_selector)]
        return client.V1ServiceList(items=items)

    def read_namespaced_service(self, name, namespace, _request_timeout=None):
        self.timeouts.append(_request_timeout)
        self.calls.append(("read_namespaced_service", namespace, name))
        self._maybe_fail("read_namespaced_service", (namespace, name))
        try:
            return self.services[(namespace, name)]
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    # endpoints

    def read_namespaced_endpoints(self, name, namespace, _request_timeout=None):
        self.timeouts.append(_request_timeout)
        self.calls.append(("read_namespaced_endpoints", namespace, name))
        self._maybe_fail("read_namespaced_endpoints", (namespace, name))
        try:
            return copy.deepcopy(self.endpoints[(namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def create_namespaced_endpoints(self, namespace, body, _request_timeout=None):
        self.timeouts.append(_request_timeout)
        body = copy.deepcopy(body)
        self.calls.append(("create_namespaced_endpoints", namespace, body.metadata.name, copy.deepcopy(body)))
        self._maybe_fail("create_namespaced_endpoints", (namespace, body.metadata.name))
        key = (namespace, body.metadata.name)
        if key in self.endpoints:
            raise ApiException(status=409, reason="AlreadyExists")
        if body.metadata.resource_version:
            raise ApiException(status=400, reason="resourceVersion should not be set on objects to be created")
        body.metadata.resource_version = self._next_rv()
        self.endpoints[key] = body
        return copy.deepcopy(body)

    def replace_namespaced_endpoints(self, name, namespace, body, _request_timeout=None):
        self.timeouts.append(_request_timeout)
        body = copy.deepcopy(body)
        self.calls.append(("replace_namespaced_endpoints", namespace, name, copy.deepcopy(body)))
        self._maybe_fail("replace_namespaced_endpoints", (namespace, name))
        key = (namespace, name)
        current = self.endpoints.get(key)
        if current is None:
            raise ApiException(status=404, reason="Not Found")
        if body.metadata.resource_version != current.metadata.resource_version:
            raise ApiException(status=409, reason="Conflict")
        body.metadata.resource_version = self._next_rv()
        self.endpoints[key] = body
        return copy.deepcopy(body)

    def writes(self):
        return [c for c in self.calls if c[0] in {"create_namespaced_endpoints", "replace_namespaced_endpoints"}]


@pytest.fixture
def scheduler_nodes():
    return [
        make_node("cp-1", internal="10.0.0.1", labels={"node-role.kubernetes.io/controlplane": "true"}),
        make_node("cp-2", external="203.0.113.5", labels={"node-role.kubernetes.io/controlplane": "true"}),
        make_node("worker-1", internal="10.0.1.1", labels={"node-role.kubernetes.io/worker": "true"}),
    ]


@pytest.fixture
def fake_api(scheduler_nodes):
    return FakeCoreApi(
        nodes=scheduler_nodes,
        services=[make_service("kube-system", "kube-scheduler-prometheus-discovery", labels={"k8s-app": "kube-scheduler"})],
    )


# Ensure project root is importable (so `import epsync` works without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)
