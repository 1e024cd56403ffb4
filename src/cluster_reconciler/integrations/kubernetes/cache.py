"""Read-through object cache used as a lister.

The cache holds the last known state of every object of one kind, as
delivered by a list+watch feeder. Reads are safe from any thread. Because
the feeder runs asynchronously, the cache is eventually consistent: an object
created a moment ago may not be visible yet.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from cluster_reconciler.integrations.kubernetes.models.base import _safe_get


class ObjectLister(Protocol):
    """Read-only view of cached objects of one kind."""

    def get(self, namespace: str | None, name: str) -> Any | None:
        """Return the cached object, or None on a cache miss."""
        ...

    def list(
        self,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> list[Any]:
        """Return cached objects, optionally filtered by namespace and labels."""
        ...


def cache_key(namespace: str | None, name: str) -> str:
    """Return the ``namespace/name`` key (``name`` for cluster-scoped objects)."""
    if namespace:
        return f"{namespace}/{name}"
    return name


def object_key(obj: Any) -> str:
    """Return the cache key of a typed object."""
    return cache_key(_safe_get(obj, "metadata", "namespace"), _safe_get(obj, "metadata", "name", default=""))


def selector_matches(selector: Mapping[str, str] | None, labels: Mapping[str, str] | None) -> bool:
    """Equality-based label selector match; an empty selector matches everything."""
    if not selector:
        return True
    labels = labels or {}
    return all(labels.get(key) == value for key, value in selector.items())


def format_selector(selector: Mapping[str, str] | None) -> str | None:
    """Render a selector as the ``k=v,k2=v2`` string the API expects."""
    if not selector:
        return None
    return ",".join(f"{key}={value}" for key, value in sorted(selector.items()))


class ObjectCache:
    """Thread-safe in-memory store of objects keyed by ``namespace/name``.

    Objects are stored as given. Callers must treat returned objects as
    read-only and copy before mutating.
    """

    def __init__(self, objects: Iterable[Any] = ()) -> None:
        self._lock = threading.RLock()
        self._items: dict[str, Any] = {}
        self._resource_version: str | None = None
        for obj in objects:
            self.add(obj)

    # -------------------------------------------------------------------------
    # Lister interface
    # -------------------------------------------------------------------------

    def get(self, namespace: str | None, name: str) -> Any | None:
        with self._lock:
            return self._items.get(cache_key(namespace, name))

    def list(
        self,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> list[Any]:
        with self._lock:
            items = list(self._items.values())
        return [
            obj
            for obj in items
            if (namespace is None or _safe_get(obj, "metadata", "namespace") == namespace)
            and selector_matches(selector, _safe_get(obj, "metadata", "labels"))
        ]

    # -------------------------------------------------------------------------
    # Feeder interface
    # -------------------------------------------------------------------------

    def add(self, obj: Any) -> None:
        """Insert or overwrite an object."""
        with self._lock:
            self._items[object_key(obj)] = obj

    def update(self, obj: Any) -> None:
        """Same as :meth:`add`; kept separate to mirror watch event types."""
        self.add(obj)

    def delete(self, obj: Any) -> None:
        """Remove an object if present."""
        with self._lock:
            self._items.pop(object_key(obj), None)

    def replace(self, objects: Iterable[Any], resource_version: str | None = None) -> None:
        """Atomically swap the whole content, as after a relist."""
        new_items = {object_key(obj): obj for obj in objects}
        with self._lock:
            self._items = new_items
            self._resource_version = resource_version

    @property
    def resource_version(self) -> str | None:
        """Resource version of the last relist or watch event."""
        with self._lock:
            return self._resource_version

    @resource_version.setter
    def resource_version(self, value: str | None) -> None:
        with self._lock:
            self._resource_version = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
