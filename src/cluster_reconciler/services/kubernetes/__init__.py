"""Kubernetes reconcile services.

Provides the apply engine, the sync orchestrator and the typed store clients
and cache feeders they run on.
"""

from cluster_reconciler.services.kubernetes.context import RequestContext
from cluster_reconciler.services.kubernetes.datacenter import DatacenterController
from cluster_reconciler.services.kubernetes.informer import CacheWatcher
from cluster_reconciler.services.kubernetes.resourceapply import (
    ApplyControl,
    ApplyOptions,
    apply_config_map,
    apply_endpoints,
    apply_generic,
    apply_namespace,
    apply_persistent_volume_claim,
    apply_pod,
    apply_secret,
    apply_service,
    apply_service_account,
)
from cluster_reconciler.services.kubernetes.resources import ObjectClient, ResourceClient
from cluster_reconciler.services.kubernetes.status import CustomObjectStatusWriter, StatusWriter
from cluster_reconciler.services.kubernetes.sync import get_owned_objects, prune, sync_children

__all__ = [
    "ApplyControl",
    "ApplyOptions",
    "CacheWatcher",
    "CustomObjectStatusWriter",
    "DatacenterController",
    "ObjectClient",
    "RequestContext",
    "ResourceClient",
    "StatusWriter",
    "apply_config_map",
    "apply_endpoints",
    "apply_generic",
    "apply_namespace",
    "apply_persistent_volume_claim",
    "apply_pod",
    "apply_secret",
    "apply_service",
    "apply_service_account",
    "get_owned_objects",
    "prune",
    "sync_children",
]
