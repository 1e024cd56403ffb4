"""ScyllaDBDatacenter child resources and reconcile pass."""

from cluster_reconciler.services.kubernetes.datacenter.controller import DatacenterController
from cluster_reconciler.services.kubernetes.datacenter.resources import (
    cluster_labels,
    make_identity_service,
    make_member_service,
    make_service_account,
    make_services,
)

__all__ = [
    "DatacenterController",
    "cluster_labels",
    "make_identity_service",
    "make_member_service",
    "make_service_account",
    "make_services",
]
