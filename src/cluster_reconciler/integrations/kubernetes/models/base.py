"""Base models and accessors for typed Kubernetes objects."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict


class OwnerReference(BaseModel):
    """Kubernetes owner reference."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    api_version: str | None = None
    kind: str | None = None
    name: str | None = None
    uid: str | None = None
    controller: bool = False
    block_owner_deletion: bool = False

    @classmethod
    def from_k8s_object(cls, obj: Any) -> OwnerReference:
        """Create from a kubernetes V1OwnerReference object."""
        if obj is None:
            return cls()
        return cls(
            api_version=getattr(obj, "api_version", None),
            kind=getattr(obj, "kind", None),
            name=getattr(obj, "name", None),
            uid=getattr(obj, "uid", None),
            controller=bool(getattr(obj, "controller", False)),
            block_owner_deletion=bool(getattr(obj, "block_owner_deletion", False)),
        )

    def to_k8s_object(self) -> Any:
        """Build the kubernetes V1OwnerReference for this reference."""
        from kubernetes.client import V1OwnerReference

        return V1OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=self.controller,
            block_owner_deletion=self.block_owner_deletion,
        )

    def same_identity(self, other: OwnerReference) -> bool:
        """True when both references name the same owner by kind, name, uid and apiVersion."""
        return (
            self.uid == other.uid
            and self.kind == other.kind
            and self.name == other.name
            and self.api_version == other.api_version
        )


def _safe_get(obj: Any, *attrs: str, default: Any = None) -> Any:
    """Safely traverse nested attributes on kubernetes SDK objects."""
    current = obj
    for attr in attrs:
        if current is None:
            return default
        current = getattr(current, attr, None)
    return current if current is not None else default


def get_labels(obj: Any) -> dict[str, str]:
    """Return a copy of the object's labels (empty when unset)."""
    return dict(_safe_get(obj, "metadata", "labels", default={}))


def get_annotations(obj: Any) -> dict[str, str]:
    """Return a copy of the object's annotations (empty when unset)."""
    return dict(_safe_get(obj, "metadata", "annotations", default={}))


def get_owner_references(obj: Any) -> list[OwnerReference]:
    """Return the object's owner references as pydantic models."""
    refs = _safe_get(obj, "metadata", "owner_references", default=[])
    return [OwnerReference.from_k8s_object(ref) for ref in refs]


def object_ref(obj: Any) -> str:
    """Return ``namespace/name`` (or ``name`` for cluster-scoped objects)."""
    name = _safe_get(obj, "metadata", "name", default="")
    namespace = _safe_get(obj, "metadata", "namespace")
    if namespace:
        return f"{namespace}/{name}"
    return name


def is_terminating(obj: Any) -> bool:
    """True when the object has a deletion timestamp set."""
    return _safe_get(obj, "metadata", "deletion_timestamp") is not None


_VERSION_PREFIX = re.compile(r"^V\d+(?:(?:alpha|beta)\d+)?")


def object_kind(obj: Any) -> str:
    """Return ``obj.kind``, falling back to the model class name (``V1Service`` -> ``Service``)."""
    kind = getattr(obj, "kind", None)
    if kind:
        return str(kind)
    return _VERSION_PREFIX.sub("", type(obj).__name__)
