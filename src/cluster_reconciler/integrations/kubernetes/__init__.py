"""Kubernetes integration - API client, configuration, cache and event sink."""

from cluster_reconciler.integrations.kubernetes.cache import ObjectCache, ObjectLister
from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
from cluster_reconciler.integrations.kubernetes.config import (
    ClusterConfig,
    EventsConfig,
    OperatorConfig,
    ReconcileDefaultsConfig,
)
from cluster_reconciler.integrations.kubernetes.events import (
    EventRecorder,
    KubernetesEventRecorder,
    LoggingEventRecorder,
    make_event_recorder,
)
from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesAggregateError,
    KubernetesAuthError,
    KubernetesCancelledError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesUpdateNotFoundError,
    KubernetesValidationError,
    MissingControllerRefError,
    OwnershipConflictError,
    SyncError,
)
from cluster_reconciler.integrations.kubernetes.kinds import KindRegistry, KindSpec, default_registry

__all__ = [
    "ClusterConfig",
    "EventRecorder",
    "EventsConfig",
    "KindRegistry",
    "KindSpec",
    "KubernetesAggregateError",
    "KubernetesAuthError",
    "KubernetesCancelledError",
    "KubernetesClient",
    "KubernetesConflictError",
    "KubernetesConnectionError",
    "KubernetesError",
    "KubernetesEventRecorder",
    "KubernetesNotFoundError",
    "KubernetesTimeoutError",
    "KubernetesUpdateNotFoundError",
    "KubernetesValidationError",
    "LoggingEventRecorder",
    "MissingControllerRefError",
    "ObjectCache",
    "ObjectLister",
    "OperatorConfig",
    "OwnershipConflictError",
    "ReconcileDefaultsConfig",
    "SyncError",
    "default_registry",
    "make_event_recorder",
]
