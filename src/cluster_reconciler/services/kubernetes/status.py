"""Persist reconcile conditions on the parent's status subresource."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol

from cluster_reconciler.integrations.kubernetes.models.datacenter import (
    DATACENTER_PLURAL,
    SCYLLA_GROUP,
    SCYLLA_VERSION,
)
from cluster_reconciler.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
    from cluster_reconciler.integrations.kubernetes.models.conditions import Condition
    from cluster_reconciler.integrations.kubernetes.models.datacenter import ScyllaDBDatacenter
    from cluster_reconciler.services.kubernetes.context import RequestContext


class StatusWriter(Protocol):
    """Receives the conditions computed by a pass."""

    def write(
        self,
        ctx: RequestContext,
        parent: ScyllaDBDatacenter,
        conditions: Sequence[Condition],
    ) -> None: ...


class CustomObjectStatusWriter(K8sBaseManager):
    """Merge-patches ``status.conditions`` and ``status.observedGeneration``."""

    _entity_name = "status"

    def __init__(
        self,
        client: KubernetesClient,
        group: str = SCYLLA_GROUP,
        version: str = SCYLLA_VERSION,
        plural: str = DATACENTER_PLURAL,
    ) -> None:
        super().__init__(client)
        self._group = group
        self._version = version
        self._plural = plural

    def build_patch(self, parent: ScyllaDBDatacenter, conditions: Sequence[Condition]) -> dict[str, Any]:
        """Return the merge patch for ``conditions``."""
        return {
            "status": {
                "observedGeneration": parent.generation,
                "conditions": [condition.to_k8s_dict() for condition in conditions],
            }
        }

    def write(
        self,
        ctx: RequestContext,
        parent: ScyllaDBDatacenter,
        conditions: Sequence[Condition],
    ) -> None:
        """Patch the parent's status; connection failures are retried."""
        body = self.build_patch(parent, conditions)

        arguments = {
            "group": self._group,
            "version": self._version,
            "namespace": parent.namespace,
            "plural": self._plural,
            "name": parent.name,
            "body": body,
        }
        patch = self._client.make_retry_decorator()(self._call)

        self._log.debug("writing_status", name=parent.name, namespace=parent.namespace, count=len(conditions))
        patch(
            ctx,
            self._client.custom_objects.patch_namespaced_custom_object_status,
            arguments,
            parent.kind,
            parent.name,
            parent.namespace,
        )
        self._log.debug("wrote_status", name=parent.name, namespace=parent.namespace)
