"""List+watch feeder for :class:`ObjectCache`.

The watcher lists one kind, replaces the cache content with the result and
then applies watch events on top. An expired resource version (``410 Gone``)
triggers a fresh relist, and so does any other watch failure: the watcher
logs it and keeps running until stopped. Connection failures are retried
with backoff.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from cluster_reconciler.integrations.kubernetes.cache import format_selector
from cluster_reconciler.integrations.kubernetes.exceptions import KubernetesConnectionError, KubernetesError
from cluster_reconciler.integrations.kubernetes.models.base import _safe_get
from cluster_reconciler.services.kubernetes.base import K8sBaseManager

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.cache import ObjectCache
    from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
    from cluster_reconciler.services.kubernetes.resources import ResourceClient

HTTP_GONE = 410


class ResourceVersionExpiredError(KubernetesError):
    """The watch resource version is too old; a relist is required."""

    def __init__(self, message: str = "Watch resource version expired") -> None:
        super().__init__(message=message, status_code=HTTP_GONE)


class CacheWatcher(K8sBaseManager):
    """Keeps an :class:`ObjectCache` in sync with one kind in the store.

    Example:
        >>> watcher = CacheWatcher(client, services, cache, namespace="scylla")
        >>> thread = threading.Thread(target=watcher.run, daemon=True)
        >>> thread.start()
        >>> ...
        >>> watcher.stop()
    """

    _entity_name = "cache_watcher"

    def __init__(
        self,
        client: KubernetesClient,
        resources: ResourceClient,
        cache: ObjectCache,
        *,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
        watch_timeout: int = 300,
        relist_backoff: float = 5.0,
    ) -> None:
        super().__init__(client)
        self._resources = resources
        self._cache = cache
        self._namespace = namespace
        self._selector = dict(selector or {})
        self._watch_timeout = watch_timeout
        self._relist_backoff = relist_backoff
        self._stopped = threading.Event()
        self._watch: Any = None
        self._log = self._log.bind(kind=resources.kind.kind, namespace=namespace)

    @property
    def cache(self) -> ObjectCache:
        """The cache this watcher feeds."""
        return self._cache

    def relist(self) -> None:
        """List the kind and atomically replace the cache content."""
        items, resource_version = self._resources.list_with_version(self._namespace, self._selector)
        self._cache.replace(items, resource_version)
        self._log.debug("relisted", count=len(items), resource_version=resource_version)

    def handle_event(self, event: Mapping[str, Any]) -> None:
        """Apply one watch event to the cache.

        Raises:
            ResourceVersionExpiredError: On an ``ERROR`` event with code 410.
            KubernetesError: On any other ``ERROR`` event.
        """
        event_type = event.get("type")
        obj = event.get("object")

        if event_type == "ERROR":
            raw = event.get("raw_object") or {}
            code = raw.get("code") if isinstance(raw, dict) else None
            message = raw.get("message", "watch error") if isinstance(raw, dict) else "watch error"
            if code == HTTP_GONE:
                raise ResourceVersionExpiredError(message)
            raise KubernetesError(message=message, status_code=code)

        resource_version = _safe_get(obj, "metadata", "resource_version")
        if event_type in ("ADDED", "MODIFIED"):
            self._cache.update(obj)
        elif event_type == "DELETED":
            self._cache.delete(obj)
        elif event_type != "BOOKMARK":
            self._log.debug("ignored_watch_event", type=event_type)
            return

        if resource_version:
            self._cache.resource_version = resource_version

    def watch_once(self) -> None:
        """Stream events from the cache's resource version until the watch ends."""
        from kubernetes import watch
        from kubernetes.client import ApiException

        method, scope = self._resources.list_function(self._namespace)
        kwargs: dict[str, Any] = dict(scope)
        label_selector = format_selector(self._selector)
        if label_selector:
            kwargs["label_selector"] = label_selector
        if self._cache.resource_version:
            kwargs["resource_version"] = self._cache.resource_version

        self._watch = watch.Watch()
        try:
            for event in self._watch.stream(method, timeout_seconds=self._watch_timeout, **kwargs):
                self.handle_event(event)
                if self._stopped.is_set():
                    break
        except ApiException as e:
            if e.status == HTTP_GONE:
                raise ResourceVersionExpiredError(str(e.reason)) from e
            self._handle_api_error(e, self._resources.kind.kind, None, self._namespace)
        except KubernetesError:
            raise
        except Exception as e:
            self._handle_api_error(e, self._resources.kind.kind, None, self._namespace)
        finally:
            self._watch.stop()

    def run(self) -> None:
        """Relist, then watch until :meth:`stop` is called."""
        retrying = self._client.make_retry_decorator()
        relist = retrying(self.relist)
        watch_once = retrying(self.watch_once)

        self._log.info("cache_watcher_starting")
        relist()
        while not self._stopped.is_set():
            try:
                watch_once()
                continue
            except ResourceVersionExpiredError:
                self._log.info("watch_expired_relisting")
            except KubernetesConnectionError as e:
                self._log.warning("watch_connection_failed", error=str(e))
            except KubernetesError as e:
                self._log.warning("watch_failed", error=str(e), status_code=e.status_code)

            try:
                relist()
            except KubernetesError as e:
                self._log.warning("relist_failed", error=str(e), status_code=e.status_code)
                self._stopped.wait(self._relist_backoff)
        self._log.info("cache_watcher_stopped")

    def stop(self) -> None:
        """Ask :meth:`run` to return after the current event."""
        self._stopped.set()
        if self._watch is not None:
            self._watch.stop()
