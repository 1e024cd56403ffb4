"""Shared pytest fixtures for cluster_reconciler tests."""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import pytest

from cluster_reconciler.integrations.kubernetes.cache import ObjectCache, cache_key, selector_matches
from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesConflictError,
    KubernetesNotFoundError,
)
from cluster_reconciler.integrations.kubernetes.kinds import KindSpec
from cluster_reconciler.integrations.kubernetes.models.base import _safe_get, object_ref
from cluster_reconciler.services.kubernetes.context import RequestContext


class FakeObjectStore:
    """In-memory store client for one kind.

    Mirrors the store semantics the reconciler relies on: AlreadyExists on
    create, NotFound on update/delete of a missing object, resourceVersion
    and UID preconditions. Objects go in and come out as deep copies.
    """

    def __init__(self, kind_spec: KindSpec, objects: Iterable[Any] = ()) -> None:
        self.kind = kind_spec
        self._objects: dict[str, Any] = {}
        self.actions: list[tuple[str, str]] = []
        self.errors: dict[str, Exception] = {}
        for obj in objects:
            self._objects[self._key_of(obj)] = copy.deepcopy(obj)

    def _key(self, namespace: str | None, name: str) -> str:
        return cache_key(namespace if self.kind.namespaced else None, name)

    def _key_of(self, obj: Any) -> str:
        return self._key(_safe_get(obj, "metadata", "namespace"), _safe_get(obj, "metadata", "name"))

    def _record(self, verb: str, ref: str) -> None:
        self.actions.append((verb, ref))
        if verb in self.errors:
            raise self.errors[verb]

    def _not_found(self, namespace: str | None, name: str) -> KubernetesNotFoundError:
        return KubernetesNotFoundError(resource_type=self.kind.kind, resource_name=name, namespace=namespace)

    def create(self, ctx: RequestContext, obj: Any) -> Any:
        ctx.check()
        self._record("create", object_ref(obj))
        key = self._key_of(obj)
        if key in self._objects:
            raise KubernetesConflictError(
                resource_type=self.kind.kind,
                resource_name=obj.metadata.name,
                namespace=obj.metadata.namespace,
                reason="AlreadyExists",
            )
        self._objects[key] = copy.deepcopy(obj)
        return copy.deepcopy(obj)

    def update(self, ctx: RequestContext, obj: Any) -> Any:
        ctx.check()
        self._record("update", object_ref(obj))
        key = self._key_of(obj)
        current = self._objects.get(key)
        if current is None:
            raise self._not_found(obj.metadata.namespace, obj.metadata.name)
        wanted = obj.metadata.resource_version
        if wanted and current.metadata.resource_version and wanted != current.metadata.resource_version:
            raise KubernetesConflictError(
                message="the object has been modified",
                resource_type=self.kind.kind,
                resource_name=obj.metadata.name,
                namespace=obj.metadata.namespace,
                reason="Conflict",
            )
        self._objects[key] = copy.deepcopy(obj)
        return copy.deepcopy(obj)

    def delete(self, ctx: RequestContext, namespace: str | None, name: str, uid: str | None = None) -> None:
        ctx.check()
        self._record("delete", cache_key(namespace, name))
        key = self._key(namespace, name)
        current = self._objects.get(key)
        if current is None:
            raise self._not_found(namespace, name)
        if uid is not None and current.metadata.uid != uid:
            raise KubernetesConflictError(
                message="Precondition failed: UID in precondition",
                resource_type=self.kind.kind,
                resource_name=name,
                namespace=namespace,
                reason="Conflict",
            )
        del self._objects[key]

    def get(self, ctx: RequestContext, namespace: str | None, name: str) -> Any:
        ctx.check()
        current = self._objects.get(self._key(namespace, name))
        if current is None:
            raise self._not_found(namespace, name)
        return copy.deepcopy(current)

    def list(
        self,
        ctx: RequestContext,
        namespace: str | None = None,
        selector: Mapping[str, str] | None = None,
    ) -> list[Any]:
        ctx.check()
        return [
            copy.deepcopy(obj)
            for obj in self._objects.values()
            if (namespace is None or obj.metadata.namespace == namespace)
            and selector_matches(selector, obj.metadata.labels)
        ]

    def objects(self) -> list[Any]:
        """Deep copies of everything stored."""
        return [copy.deepcopy(obj) for obj in self._objects.values()]

    def stored(self, namespace: str | None, name: str) -> Any | None:
        """The stored object (not a copy), or None."""
        return self._objects.get(self._key(namespace, name))

    def fill(self, cache: ObjectCache) -> ObjectCache:
        """Replace the cache content with the stored objects."""
        cache.replace(self.objects())
        return cache

    def mutating_actions(self) -> list[tuple[str, str]]:
        return [action for action in self.actions if action[0] in ("create", "update", "delete")]


class FakeEventRecorder:
    """Collects events as ``"<type> <reason> <message>"`` strings."""

    def __init__(self) -> None:
        self.events: list[str] = []

    def event(self, obj: Any, event_type: str, reason: str, message: str) -> None:
        self.events.append(f"{event_type} {reason} {message}")


@pytest.fixture
def request_context() -> RequestContext:
    """A context bounded by a generous deadline."""
    return RequestContext(timeout=30)


@pytest.fixture
def event_recorder() -> FakeEventRecorder:
    """Create an event recorder that keeps every event in memory."""
    return FakeEventRecorder()


@pytest.fixture
def make_store() -> Callable[..., FakeObjectStore]:
    """Factory for in-memory stores: ``make_store(kind_spec, objects)``."""

    def _make(kind_spec: KindSpec, objects: Iterable[Any] = ()) -> FakeObjectStore:
        return FakeObjectStore(kind_spec, objects)

    return _make
