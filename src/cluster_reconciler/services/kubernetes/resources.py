"""Typed store access for one child kind.

:class:`ResourceClient` derives the ``CoreV1Api`` method names from a
:class:`KindSpec` and offers the five calls the reconciler needs. Every call
checks its :class:`RequestContext` first and is bound by the context's
remaining time.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol

from cluster_reconciler.integrations.kubernetes.cache import format_selector
from cluster_reconciler.integrations.kubernetes.models.base import _safe_get
from cluster_reconciler.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
    from cluster_reconciler.integrations.kubernetes.kinds import KindSpec
    from cluster_reconciler.services.kubernetes.context import RequestContext


PROPAGATION_BACKGROUND = "Background"


class ObjectClient(Protocol):
    """Store operations for objects of one kind."""

    def create(self, ctx: RequestContext, obj: Any) -> Any: ...

    def update(self, ctx: RequestContext, obj: Any) -> Any: ...

    def delete(self, ctx: RequestContext, namespace: str | None, name: str, uid: str | None = None) -> None: ...

    def get(self, ctx: RequestContext, namespace: str | None, name: str) -> Any: ...

    def list(
        self,
        ctx: RequestContext,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> list[Any]: ...


class ResourceClient(K8sBaseManager):
    """``CoreV1Api`` create/replace/delete/read/list for a single kind.

    Example:
        >>> services = ResourceClient(client, registry.get("Service"))
        >>> services.get(ctx, "default", "basic")
    """

    _entity_name = "resource"

    def __init__(self, client: KubernetesClient, kind_spec: KindSpec) -> None:
        super().__init__(client)
        self._kind = kind_spec
        self._log = self._log.bind(kind=kind_spec.kind)

    @property
    def kind(self) -> KindSpec:
        """The kind this client operates on."""
        return self._kind

    def _method(self, verb: str, *, all_namespaces: bool = False) -> Any:
        suffix = self._kind.method_suffix
        if not self._kind.namespaced:
            name = f"{verb}_{suffix}"
        elif all_namespaces:
            name = f"{verb}_{suffix}_for_all_namespaces"
        else:
            name = f"{verb}_namespaced_{suffix}"
        return getattr(self._client.core_v1, name)

    def _scope(self, namespace: str | None) -> dict[str, Any]:
        if not self._kind.namespaced:
            return {}
        return {"namespace": self._resolve_namespace(namespace)}

    # =========================================================================
    # Write Operations
    # =========================================================================

    def create(self, ctx: RequestContext, obj: Any) -> Any:
        """Create ``obj`` and return the stored object."""
        name = _safe_get(obj, "metadata", "name")
        scope = self._scope(_safe_get(obj, "metadata", "namespace"))
        self._log.debug("creating_object", name=name, **scope)
        result = self._call(
            ctx, self._method("create"), {"body": obj, **scope}, self._kind.kind, name, scope.get("namespace")
        )
        self._log.debug("created_object", name=name, **scope)
        return result

    def update(self, ctx: RequestContext, obj: Any) -> Any:
        """Replace the stored object with ``obj``.

        The request carries ``obj.metadata.resource_version``, so a stale body
        is rejected by the store with a conflict.
        """
        name = _safe_get(obj, "metadata", "name")
        scope = self._scope(_safe_get(obj, "metadata", "namespace"))
        self._log.debug("updating_object", name=name, **scope)
        result = self._call(
            ctx,
            self._method("replace"),
            {"name": name, "body": obj, **scope},
            self._kind.kind,
            name,
            scope.get("namespace"),
        )
        self._log.debug("updated_object", name=name, **scope)
        return result

    def delete(self, ctx: RequestContext, namespace: str | None, name: str, uid: str | None = None) -> None:
        """Delete an object with background propagation.

        Args:
            ctx: Request context.
            namespace: Namespace (ignored for cluster-scoped kinds).
            name: Object name.
            uid: When set, the store only deletes the object with this UID.
        """
        from kubernetes.client import V1DeleteOptions, V1Preconditions

        scope = self._scope(namespace)
        body = V1DeleteOptions(
            propagation_policy=PROPAGATION_BACKGROUND,
            preconditions=V1Preconditions(uid=uid) if uid else None,
        )
        self._log.debug("deleting_object", name=name, uid=uid, **scope)
        self._call(
            ctx,
            self._method("delete"),
            {"name": name, "body": body, **scope},
            self._kind.kind,
            name,
            scope.get("namespace"),
        )
        self._log.debug("deleted_object", name=name, **scope)

    # =========================================================================
    # Read Operations
    # =========================================================================

    def get(self, ctx: RequestContext, namespace: str | None, name: str) -> Any:
        """Read one object directly from the store."""
        scope = self._scope(namespace)
        return self._call(
            ctx, self._method("read"), {"name": name, **scope}, self._kind.kind, name, scope.get("namespace")
        )

    def list(
        self,
        ctx: RequestContext,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> list[Any]:
        """List objects, across all namespaces when ``namespace`` is None."""
        ctx.check()
        items, _ = self._list(namespace, selector, **ctx.request_kwargs())
        return items

    def list_with_version(
        self,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> tuple[list[Any], str | None]:
        """List objects and return the list's resource version, for a watch."""
        return self._list(namespace, selector)

    def _list(
        self,
        namespace: str | None,
        selector: Mapping[str, str] | None,
        **kwargs: Any,
    ) -> tuple[list[Any], str | None]:
        label_selector = format_selector(selector)
        if label_selector:
            kwargs["label_selector"] = label_selector
        method, scope = self.list_function(namespace)
        try:
            result = method(**scope, **kwargs)
        except Exception as e:
            self._handle_api_error(e, self._kind.kind, None, namespace)
        return list(result.items), _safe_get(result, "metadata", "resource_version")

    def list_function(self, namespace: str | None = None) -> tuple[Any, dict[str, Any]]:
        """Return the raw list method and its scope kwargs, for ``watch.Watch.stream``."""
        if self._kind.namespaced and namespace is None:
            return self._method("list", all_namespaces=True), {}
        return self._method("list"), self._scope(namespace)
