"""Unit tests for the object cache."""

from __future__ import annotations

import pytest
from kubernetes.client import V1Namespace, V1ObjectMeta, V1Service

from cluster_reconciler.integrations.kubernetes.cache import (
    ObjectCache,
    cache_key,
    format_selector,
    object_key,
    selector_matches,
)


def _service(name: str, namespace: str = "default", labels: dict[str, str] | None = None) -> V1Service:
    return V1Service(metadata=V1ObjectMeta(name=name, namespace=namespace, labels=labels))


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKeys:
    """Test cache key helpers."""

    def test_namespaced_key(self) -> None:
        assert cache_key("default", "test") == "default/test"

    def test_cluster_scoped_key(self) -> None:
        assert cache_key(None, "scylla") == "scylla"
        assert cache_key("", "scylla") == "scylla"

    def test_object_key(self) -> None:
        assert object_key(_service("test")) == "default/test"
        assert object_key(V1Namespace(metadata=V1ObjectMeta(name="scylla"))) == "scylla"


@pytest.mark.unit
@pytest.mark.kubernetes
class TestSelectors:
    """Test equality-based selectors."""

    @pytest.mark.parametrize(
        ("selector", "labels", "expected"),
        [
            (None, None, True),
            ({}, {"a": "b"}, True),
            ({"a": "b"}, {"a": "b", "c": "d"}, True),
            ({"a": "b"}, {"a": "x"}, False),
            ({"a": "b"}, None, False),
            ({"a": "b", "c": "d"}, {"a": "b"}, False),
        ],
    )
    def test_selector_matches(
        self,
        selector: dict[str, str] | None,
        labels: dict[str, str] | None,
        expected: bool,
    ) -> None:
        assert selector_matches(selector, labels) is expected

    def test_format_selector_sorted(self) -> None:
        assert format_selector({"scylla/cluster": "basic", "app": "scylla"}) == "app=scylla,scylla/cluster=basic"

    def test_format_empty_selector(self) -> None:
        assert format_selector(None) is None
        assert format_selector({}) is None


@pytest.mark.unit
@pytest.mark.kubernetes
class TestObjectCache:
    """Test ObjectCache reads and writes."""

    def test_get_hit_and_miss(self) -> None:
        svc = _service("test")
        cache = ObjectCache([svc])

        assert cache.get("default", "test") is svc
        assert cache.get("other", "test") is None

    def test_list_filters_namespace_and_labels(self) -> None:
        a = _service("a", labels={"app": "scylla"})
        b = _service("b", labels={"app": "other"})
        c = _service("c", namespace="other", labels={"app": "scylla"})
        cache = ObjectCache([a, b, c])

        assert len(cache.list()) == 3
        assert cache.list("default") == [a, b]
        assert cache.list(selector={"app": "scylla"}) == [a, c]
        assert cache.list("default", {"app": "scylla"}) == [a]

    def test_update_overwrites(self) -> None:
        cache = ObjectCache([_service("test")])
        newer = _service("test", labels={"v": "2"})

        cache.update(newer)

        assert cache.get("default", "test") is newer
        assert len(cache) == 1

    def test_delete(self) -> None:
        svc = _service("test")
        cache = ObjectCache([svc])

        cache.delete(svc)
        cache.delete(svc)

        assert len(cache) == 0

    def test_replace_swaps_content(self) -> None:
        cache = ObjectCache([_service("old")])

        cache.replace([_service("new")], resource_version="42")

        assert cache.get("default", "old") is None
        assert cache.get("default", "new") is not None
        assert cache.resource_version == "42"

    def test_resource_version_setter(self) -> None:
        cache = ObjectCache()
        assert cache.resource_version is None
        cache.resource_version = "7"
        assert cache.resource_version == "7"
