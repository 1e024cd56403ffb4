"""Models for typed Kubernetes objects, status conditions and parent resources."""

from cluster_reconciler.integrations.kubernetes.models.base import (
    OwnerReference,
    get_annotations,
    get_labels,
    get_owner_references,
    is_terminating,
    object_kind,
    object_ref,
)
from cluster_reconciler.integrations.kubernetes.models.conditions import Condition
from cluster_reconciler.integrations.kubernetes.models.datacenter import (
    RackSpec,
    ScyllaDBDatacenter,
)

__all__ = [
    "Condition",
    "OwnerReference",
    "RackSpec",
    "ScyllaDBDatacenter",
    "get_annotations",
    "get_labels",
    "get_owner_references",
    "is_terminating",
    "object_kind",
    "object_ref",
]
