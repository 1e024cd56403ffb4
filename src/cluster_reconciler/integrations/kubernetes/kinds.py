"""Per-kind capability descriptions and the registry that holds them.

A :class:`KindSpec` carries everything the generic apply and sync code needs
to know about one child kind: its identity, the ``CoreV1Api`` method suffix,
which top-level fields make up the desired state, and how to carry
server-allocated values over from the live object on update.

The specs are frozen constants. The registry is an explicit value built once
at startup and passed to the components that need it.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from kubernetes.client import (
    V1ConfigMap,
    V1Endpoints,
    V1Namespace,
    V1PersistentVolumeClaim,
    V1Pod,
    V1Secret,
    V1Service,
    V1ServiceAccount,
)

# Server-allocated Service fields that must survive an update.
SERVICE_ALLOCATED_FIELDS = ("cluster_ip", "cluster_ips", "health_check_node_port")

# PVC fields filled in by the binder or admission when left unset.
PVC_DEFAULTED_FIELDS = ("volume_name", "storage_class_name", "volume_mode")

PreserveFunc = Callable[[Any, Any], None]


@dataclass(frozen=True)
class KindSpec:
    """Capability set of one child kind.

    Attributes:
        kind: Kubernetes kind, e.g. ``"Service"``.
        plural: Resource name used in API paths, e.g. ``"services"``.
        model: The kubernetes client model class, e.g. ``V1Service``.
        method_suffix: Suffix of the ``CoreV1Api`` methods, e.g. ``"service"``
            for ``create_namespaced_service``.
        spec_fields: Top-level attributes copied from the desired object on update.
        namespaced: Whether the kind lives in a namespace.
        api_version: Group/version of the kind.
        preserve: Optional hook ``(body, existing)`` run on the update body.
    """

    kind: str
    plural: str
    model: type
    method_suffix: str
    spec_fields: tuple[str, ...]
    namespaced: bool = True
    api_version: str = "v1"
    preserve: PreserveFunc | None = None

    def overlay(self, body: Any, required: Any) -> None:
        """Copy the desired-state fields of ``required`` onto ``body``."""
        for field_name in self.spec_fields:
            setattr(body, field_name, copy.deepcopy(getattr(required, field_name, None)))


def _preserve_nested(path: str, field_names: tuple[str, ...]) -> PreserveFunc:
    """Build a hook keeping ``existing.<path>.<field>`` when the body leaves it unset."""

    def _preserve(body: Any, existing: Any) -> None:
        body_part = getattr(body, path, None)
        existing_part = getattr(existing, path, None)
        if body_part is None or existing_part is None:
            return
        for field_name in field_names:
            if getattr(body_part, field_name, None) is None:
                setattr(body_part, field_name, getattr(existing_part, field_name, None))

    return _preserve


class KindRegistry:
    """Lookup of :class:`KindSpec` by kind name or model class."""

    def __init__(self, kinds: Iterable[KindSpec] = ()) -> None:
        self._by_kind: dict[str, KindSpec] = {}
        self._by_model: dict[type, KindSpec] = {}
        for kind_spec in kinds:
            self.register(kind_spec)

    def register(self, kind_spec: KindSpec) -> None:
        """Add a kind; registering the same kind twice is an error."""
        if kind_spec.kind in self._by_kind:
            raise ValueError(f"kind {kind_spec.kind!r} is already registered")
        self._by_kind[kind_spec.kind] = kind_spec
        self._by_model[kind_spec.model] = kind_spec

    def get(self, kind: str) -> KindSpec:
        """Return the spec for ``kind``.

        Raises:
            KeyError: If the kind is not registered.
        """
        try:
            return self._by_kind[kind]
        except KeyError:
            raise KeyError(f"kind {kind!r} is not registered") from None

    def for_object(self, obj: Any) -> KindSpec:
        """Return the spec matching the model class of ``obj``."""
        try:
            return self._by_model[type(obj)]
        except KeyError:
            raise KeyError(f"no kind registered for {type(obj).__name__}") from None

    def __contains__(self, kind: object) -> bool:
        return kind in self._by_kind

    def __iter__(self) -> Iterator[KindSpec]:
        return iter(self._by_kind.values())

    def __len__(self) -> int:
        return len(self._by_kind)


SERVICE = KindSpec(
    kind="Service",
    plural="services",
    model=V1Service,
    method_suffix="service",
    spec_fields=("spec",),
    preserve=_preserve_nested("spec", SERVICE_ALLOCATED_FIELDS),
)

SECRET = KindSpec(
    kind="Secret",
    plural="secrets",
    model=V1Secret,
    method_suffix="secret",
    spec_fields=("data", "string_data", "type", "immutable"),
)

CONFIG_MAP = KindSpec(
    kind="ConfigMap",
    plural="configmaps",
    model=V1ConfigMap,
    method_suffix="config_map",
    spec_fields=("data", "binary_data", "immutable"),
)

SERVICE_ACCOUNT = KindSpec(
    kind="ServiceAccount",
    plural="serviceaccounts",
    model=V1ServiceAccount,
    method_suffix="service_account",
    spec_fields=("automount_service_account_token", "image_pull_secrets"),
)

NAMESPACE = KindSpec(
    kind="Namespace",
    plural="namespaces",
    model=V1Namespace,
    method_suffix="namespace",
    spec_fields=("spec",),
    namespaced=False,
)

ENDPOINTS = KindSpec(
    kind="Endpoints",
    plural="endpoints",
    model=V1Endpoints,
    method_suffix="endpoints",
    spec_fields=("subsets",),
)

POD = KindSpec(
    kind="Pod",
    plural="pods",
    model=V1Pod,
    method_suffix="pod",
    spec_fields=("spec",),
)

PERSISTENT_VOLUME_CLAIM = KindSpec(
    kind="PersistentVolumeClaim",
    plural="persistentvolumeclaims",
    model=V1PersistentVolumeClaim,
    method_suffix="persistent_volume_claim",
    spec_fields=("spec",),
    preserve=_preserve_nested("spec", PVC_DEFAULTED_FIELDS),
)

CORE_KINDS = (
    SERVICE,
    SECRET,
    CONFIG_MAP,
    SERVICE_ACCOUNT,
    NAMESPACE,
    ENDPOINTS,
    POD,
    PERSISTENT_VOLUME_CLAIM,
)


def default_registry() -> KindRegistry:
    """Build the registry of core/v1 child kinds the reconciler manages."""
    return KindRegistry(CORE_KINDS)
