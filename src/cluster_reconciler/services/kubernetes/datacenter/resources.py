"""Desired child objects of a ScyllaDBDatacenter.

Builders are pure: the same datacenter always yields equal objects.
"""

from __future__ import annotations

from kubernetes.client import (
    V1ObjectMeta,
    V1Service,
    V1ServiceAccount,
    V1ServicePort,
    V1ServiceSpec,
)

from cluster_reconciler.integrations.kubernetes.models.datacenter import ScyllaDBDatacenter

CLUSTER_NAME_LABEL = "scylla/cluster"
DATACENTER_NAME_LABEL = "scylla/datacenter"
RACK_NAME_LABEL = "scylla/rack"
APP_NAME_LABEL = "app.kubernetes.io/name"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
SERVICE_TYPE_LABEL = "scylla-operator.scylladb.com/scylla-service-type"
POD_NAME_LABEL = "statefulset.kubernetes.io/pod-name"

APP_NAME = "scylla"
MANAGED_BY = "scylla-operator"

SERVICE_TYPE_IDENTITY = "identity"
SERVICE_TYPE_MEMBER = "member"

# (name, port) pairs exposed on every member and on the identity service.
SCYLLA_PORTS = (
    ("inter-node", 7000),
    ("inter-node-ssl", 7001),
    ("jmx", 7199),
    ("cql", 9042),
    ("cql-ssl", 9142),
    ("thrift", 9160),
    ("agent-api", 10001),
    ("prometheus", 9180),
    ("node-exporter", 9100),
)


def cluster_labels(sdc: ScyllaDBDatacenter) -> dict[str, str]:
    """Labels shared by every child of ``sdc``; also its list selector."""
    return {
        CLUSTER_NAME_LABEL: sdc.cluster_name,
        DATACENTER_NAME_LABEL: sdc.effective_datacenter_name,
        APP_NAME_LABEL: APP_NAME,
        MANAGED_BY_LABEL: MANAGED_BY,
    }


def member_name(sdc: ScyllaDBDatacenter, rack: str, ordinal: int) -> str:
    """Pod and member service name of one rack ordinal."""
    return f"{sdc.name}-{rack}-{ordinal}"


def service_account_name(sdc: ScyllaDBDatacenter) -> str:
    return f"{sdc.name}-member"


def identity_service_name(sdc: ScyllaDBDatacenter) -> str:
    return f"{sdc.name}-client"


def _ports() -> list[V1ServicePort]:
    return [V1ServicePort(name=name, port=port, protocol="TCP") for name, port in SCYLLA_PORTS]


def _metadata(sdc: ScyllaDBDatacenter, name: str, labels: dict[str, str]) -> V1ObjectMeta:
    return V1ObjectMeta(
        name=name,
        namespace=sdc.namespace,
        labels=labels,
        owner_references=[sdc.controller_ref().to_k8s_object()],
    )


def make_service_account(sdc: ScyllaDBDatacenter) -> V1ServiceAccount:
    """The ServiceAccount the datacenter's pods run as."""
    return V1ServiceAccount(
        api_version="v1",
        kind="ServiceAccount",
        metadata=_metadata(sdc, service_account_name(sdc), cluster_labels(sdc)),
    )


def make_identity_service(sdc: ScyllaDBDatacenter) -> V1Service:
    """ClusterIP service selecting every member of the datacenter."""
    labels = cluster_labels(sdc)
    labels[SERVICE_TYPE_LABEL] = SERVICE_TYPE_IDENTITY
    return V1Service(
        api_version="v1",
        kind="Service",
        metadata=_metadata(sdc, identity_service_name(sdc), labels),
        spec=V1ServiceSpec(
            type="ClusterIP",
            selector=cluster_labels(sdc),
            ports=_ports(),
        ),
    )


def make_member_service(sdc: ScyllaDBDatacenter, rack: str, ordinal: int) -> V1Service:
    """Stable-address service for one member pod."""
    name = member_name(sdc, rack, ordinal)
    labels = cluster_labels(sdc)
    labels[RACK_NAME_LABEL] = rack
    labels[SERVICE_TYPE_LABEL] = SERVICE_TYPE_MEMBER
    return V1Service(
        api_version="v1",
        kind="Service",
        metadata=_metadata(sdc, name, labels),
        spec=V1ServiceSpec(
            type="ClusterIP",
            selector={POD_NAME_LABEL: name},
            ports=_ports(),
            publish_not_ready_addresses=True,
        ),
    )


def make_services(sdc: ScyllaDBDatacenter) -> list[V1Service]:
    """Identity service followed by one member service per rack ordinal."""
    services = [make_identity_service(sdc)]
    for rack in sdc.racks:
        services.extend(make_member_service(sdc, rack.name, ordinal) for ordinal in range(rack.members))
    return services
