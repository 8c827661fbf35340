from __future__ import annotations

import logging
from typing import Any, Iterable

from .errors import PerNodeError, ResolverError
from .kube_ops import API_ERRORS, DEFAULT_REQUEST_TIMEOUT, describe
from .models import MachineAddress

logger = logging.getLogger(__name__)

# Address types in order of preference.
ADDRESS_PRIORITY = ("InternalIP", "ExternalIP")


def node_address(node: Any) -> str:
    """Return the address to publish for a node.

    Priority:
      1) InternalIP
      2) ExternalIP
    Raises PerNodeError when the node reports neither.
    """
    by_type: dict[str, list[str]] = {}
    status = getattr(node, "status", None)
    for a in (getattr(status, "addresses", None) or []):
        if a.address:
            by_type.setdefault(a.type, []).append(a.address)

    for t in ADDRESS_PRIORITY:
        if by_type.get(t):
            return by_type[t][0]
    raise PerNodeError(node.metadata.name)


def node_addresses(nodes: Iterable[Any]) -> tuple[list[MachineAddress], list[PerNodeError]]:
    """Resolve every node, collecting failures instead of stopping at the first one."""
    addresses: list[MachineAddress] = []
    errors: list[PerNodeError] = []
    for n in nodes:
        try:
            ip = node_address(n)
        except PerNodeError as e:
            errors.append(e)
            continue
        addresses.append(MachineAddress(ip=ip, node_name=n.metadata.name, node_uid=n.metadata.uid))
    return addresses, errors


class NodeAddressResolver:
    def __init__(self, core_api: Any, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.core_api = core_api
        self.request_timeout = request_timeout

    def resolve(self, node_selector: str) -> tuple[list[MachineAddress], list[PerNodeError]]:
        try:
            nodes = self.core_api.list_node(label_selector=node_selector, _request_timeout=self.request_timeout)
        except API_ERRORS as e:
            raise ResolverError(node_selector, describe(e)) from e
        items = nodes.items or []
        logger.debug("selector %r matched %d nodes", node_selector, len(items))
        return node_addresses(items)
