"""Shared plumbing for everything that talks to the API server.

Store clients, cache watchers, status writers and controllers all need the
same three things: the :class:`KubernetesClient`, a logger bound to what they
are, and one way of turning an ``ApiException`` into the reconciler's error
types.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, NoReturn

import structlog

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
    from cluster_reconciler.services.kubernetes.context import RequestContext

logger = structlog.get_logger()


class K8sBaseManager:
    """Base class of the reconciler's API-facing components.

    Subclasses set ``_entity_name``; it becomes the ``entity`` key of every
    log line they emit.

    Example:
        >>> class StatusWriter(K8sBaseManager):
        ...     _entity_name = "status"
    """

    _entity_name: str = ""

    def __init__(self, client: KubernetesClient) -> None:
        self._client = client
        self._log = logger.bind(entity=self._entity_name)

    def _resolve_namespace(self, namespace: str | None) -> str:
        """Return ``namespace``, or the configured default when unset."""
        return namespace or self._client.default_namespace

    def _call(
        self,
        ctx: RequestContext,
        method: Callable[..., Any],
        arguments: Mapping[str, Any],
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> Any:
        """Call ``method(**arguments)`` bound by ``ctx``.

        The context is checked first, so a cancelled or expired pass never
        reaches the server. Its remaining time becomes the request timeout.

        Raises:
            KubernetesCancelledError: ``ctx`` was cancelled.
            KubernetesTimeoutError: ``ctx`` ran out of time.
            KubernetesError: The translated API failure.
        """
        ctx.check()
        try:
            return method(**arguments, **ctx.request_kwargs())
        except Exception as e:
            self._handle_api_error(e, resource_type, resource_name, namespace)

    def _handle_api_error(
        self,
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> NoReturn:
        """Re-raise ``e`` as the matching :class:`KubernetesError` subclass."""
        raise self._client.translate_api_exception(
            e,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )
