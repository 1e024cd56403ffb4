"""Event sink for create/update/ownership outcomes of child objects."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal, Protocol

import structlog

from cluster_reconciler.integrations.kubernetes.models.base import _safe_get, object_kind

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
    from cluster_reconciler.integrations.kubernetes.config import EventsConfig

logger = structlog.get_logger()

EventType = Literal["Normal", "Warning"]

EVENT_TYPE_NORMAL: EventType = "Normal"
EVENT_TYPE_WARNING: EventType = "Warning"

# Kinds served by the core API group, whose apiVersion is plain "v1".
_CORE_KINDS = frozenset(
    {
        "ConfigMap",
        "Endpoints",
        "Namespace",
        "PersistentVolumeClaim",
        "Pod",
        "Secret",
        "Service",
        "ServiceAccount",
    }
)


class EventRecorder(Protocol):
    """Receives one record per create, update or ownership failure."""

    def event(self, obj: Any, event_type: EventType, reason: str, message: str) -> None:
        """Record an event about ``obj``."""
        ...


class KubernetesEventRecorder:
    """Writes ``core/v1`` Events into the involved object's namespace.

    Emitting an event is best effort: a failure to write the event is logged
    and never fails the operation being reported.
    """

    def __init__(self, client: KubernetesClient, component: str, host: str | None = None) -> None:
        self._client = client
        self._component = component
        self._host = host
        self._log = logger.bind(entity="event", component=component)

    def event(self, obj: Any, event_type: EventType, reason: str, message: str) -> None:
        from kubernetes.client import CoreV1Event, V1EventSource, V1ObjectMeta, V1ObjectReference

        name = _safe_get(obj, "metadata", "name", default="")
        namespace = _safe_get(obj, "metadata", "namespace") or self._client.default_namespace
        kind = object_kind(obj)
        api_version = getattr(obj, "api_version", None) or ("v1" if kind in _CORE_KINDS else None)
        now = datetime.now(UTC)
        body = CoreV1Event(
            metadata=V1ObjectMeta(generate_name=f"{name}.", namespace=namespace),
            involved_object=V1ObjectReference(
                api_version=api_version,
                kind=kind,
                name=name,
                namespace=_safe_get(obj, "metadata", "namespace"),
                uid=_safe_get(obj, "metadata", "uid"),
                resource_version=_safe_get(obj, "metadata", "resource_version"),
            ),
            type=event_type,
            reason=reason,
            message=message,
            source=V1EventSource(component=self._component, host=self._host),
            first_timestamp=now,
            last_timestamp=now,
            count=1,
        )
        try:
            self._client.core_v1.create_namespaced_event(namespace=namespace, body=body)
        except Exception as e:
            self._log.warning(
                "event_write_failed",
                reason=reason,
                involved_object=name,
                namespace=namespace,
                error=str(e),
            )
        else:
            self._log.debug("event_recorded", type=event_type, reason=reason, message=message)


class LoggingEventRecorder:
    """Event sink that only logs; used when the events API is disabled."""

    def __init__(self) -> None:
        self._log = logger.bind(entity="event")

    def event(self, obj: Any, event_type: EventType, reason: str, message: str) -> None:
        log = self._log.warning if event_type == EVENT_TYPE_WARNING else self._log.info
        log("event", type=event_type, reason=reason, message=message)


def make_event_recorder(client: KubernetesClient, config: EventsConfig) -> EventRecorder:
    """Return the event sink selected by ``config``."""
    if not config.enabled:
        return LoggingEventRecorder()
    return KubernetesEventRecorder(client, component=config.component)
