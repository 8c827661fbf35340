from __future__ import annotations

from typing import Sequence

from kubernetes import client

from .models import DiscoveryRecord, EndpointSubset, MachineAddress, ManagedService


def build(service: ManagedService, addresses: Sequence[MachineAddress]) -> DiscoveryRecord:
    """Build the Endpoints record for a service.

    A single subset pairs every declared port with every resolved address:
    each node is expected to answer on each port. No addresses is valid and
    publishes an empty target set.
    """
    subset = EndpointSubset(ports=tuple(service.ports), addresses=tuple(addresses))
    return DiscoveryRecord(
        namespace=service.namespace,
        name=service.name,
        labels=dict(service.labels),
        subsets=(subset,),
    )


def to_v1_endpoints(record: DiscoveryRecord) -> client.V1Endpoints:
    subsets = []
    for s in record.subsets:
        addresses = [
            client.V1EndpointAddress(
                ip=a.ip,
                target_ref=client.V1ObjectReference(kind="Node", name=a.node_name, uid=a.node_uid),
            )
            for a in s.addresses
        ]
        ports = [client.CoreV1EndpointPort(name=p.name or None, port=p.port, protocol=p.protocol) for p in s.ports]
        subsets.append(client.V1EndpointSubset(addresses=addresses or None, ports=ports or None))

    return client.V1Endpoints(
        api_version="v1",
        kind="Endpoints",
        metadata=client.V1ObjectMeta(
            name=record.name,
            namespace=record.namespace,
            labels=dict(record.labels) or None,
            resource_version=record.resource_version,
        ),
        subsets=subsets,
    )
