"""Content hash annotation and managed label/annotation keys.

The hash is a fingerprint of the last desired state the reconciler applied
to an object. It is computed over the canonical JSON form of the object with
server-managed fields and the reconciler's own annotations removed, so it is
stable across processes and independent of map ordering.

Alongside the hash the reconciler records which label and annotation keys it
set. On the next update it removes keys it used to manage and no longer
wants, and leaves every other key alone.
"""

from __future__ import annotations

import base64
import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass
from functools import cache
from typing import Any

import structlog
from kubernetes.client import ApiClient, V1ObjectMeta

logger = structlog.get_logger()

HASH_ANNOTATION = "scylla-operator.scylladb.com/managed-hash"
MANAGED_KEYS_ANNOTATION = "scylla-operator.scylladb.com/managed-keys"

# Annotations owned by the reconciler itself; never part of the hash input.
ENGINE_ANNOTATIONS = (HASH_ANNOTATION, MANAGED_KEYS_ANNOTATION)

# Fields added by the API server (camelCase, as serialized).
SERVER_MANAGED_METADATA_FIELDS = (
    "creationTimestamp",
    "deletionGracePeriodSeconds",
    "deletionTimestamp",
    "generation",
    "managedFields",
    "resourceVersion",
    "selfLink",
    "uid",
)

# Top-level fields that identify the type or are written by the server.
NON_HASHED_TOP_LEVEL_FIELDS = ("apiVersion", "kind", "status")

REMOVAL_MARKER_SUFFIX = "-"


@cache
def _serializer() -> ApiClient:
    # Only sanitize_for_serialization is used; it touches no connection state.
    return ApiClient()


def _prune_empty(value: Any) -> Any:
    """Drop map entries whose value is None or an empty map/list, recursively."""
    if isinstance(value, dict):
        pruned = {}
        for key, item in value.items():
            item = _prune_empty(item)
            if item is None or item == {} or item == []:
                continue
            pruned[key] = item
        return pruned
    if isinstance(value, list):
        return [_prune_empty(item) for item in value]
    return value


def hashable_projection(obj: Any) -> dict[str, Any]:
    """Return the part of ``obj`` that the content hash covers."""
    data = _serializer().sanitize_for_serialization(obj)
    if not isinstance(data, dict):
        raise TypeError(f"cannot hash {type(obj).__name__}: not a Kubernetes object")

    for field_name in NON_HASHED_TOP_LEVEL_FIELDS:
        data.pop(field_name, None)

    metadata = data.get("metadata") or {}
    for field_name in SERVER_MANAGED_METADATA_FIELDS:
        metadata.pop(field_name, None)
    annotations = metadata.get("annotations") or {}
    for key in ENGINE_ANNOTATIONS:
        annotations.pop(key, None)

    return _prune_empty(data)


def compute_hash(obj: Any) -> str:
    """Compute the content hash of ``obj`` without modifying it."""
    canonical = json.dumps(
        hashable_projection(obj),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    digest = hashlib.sha512(canonical.encode("utf-8")).digest()
    return base64.b64encode(digest).decode("ascii")


def _ensure_annotations(obj: Any) -> dict[str, str]:
    if obj.metadata is None:
        obj.metadata = V1ObjectMeta()
    if obj.metadata.annotations is None:
        obj.metadata.annotations = {}
    annotations: dict[str, str] = obj.metadata.annotations
    return annotations


def set_hash_annotation(obj: Any) -> str:
    """Write the content hash of ``obj`` into its hash annotation.

    Any previous hash value is overwritten. The annotation is not part of the
    hash input, so calling this twice yields the same value.

    Returns:
        The hash that was written.
    """
    value = compute_hash(obj)
    _ensure_annotations(obj)[HASH_ANNOTATION] = value
    return value


def read_hash_annotation(obj: Any) -> str | None:
    """Return the stored hash, or None when the object was never converged."""
    metadata = getattr(obj, "metadata", None)
    if metadata is None or not metadata.annotations:
        return None
    return metadata.annotations.get(HASH_ANNOTATION)


# =============================================================================
# Managed keys
# =============================================================================


def is_removal_marker(key: str) -> bool:
    """True for ``foo-`` style keys that request removal of ``foo``."""
    return key.endswith(REMOVAL_MARKER_SUFFIX)


def strip_removal_markers(mapping: Mapping[str, str] | None) -> dict[str, str]:
    """Return ``mapping`` without removal-marker keys."""
    return {key: value for key, value in (mapping or {}).items() if not is_removal_marker(key)}


@dataclass(frozen=True)
class ManagedKeys:
    """Label and annotation keys the reconciler set on its last write."""

    labels: frozenset[str] = frozenset()
    annotations: frozenset[str] = frozenset()

    @classmethod
    def from_object(cls, obj: Any) -> ManagedKeys:
        """Collect the keys a desired object sets (markers and engine keys excluded)."""
        metadata = getattr(obj, "metadata", None)
        labels = strip_removal_markers(getattr(metadata, "labels", None))
        annotations = strip_removal_markers(getattr(metadata, "annotations", None))
        return cls(
            labels=frozenset(labels),
            annotations=frozenset(k for k in annotations if k not in ENGINE_ANNOTATIONS),
        )

    def to_annotation(self) -> str:
        """Serialize as compact, sorted JSON."""
        return json.dumps(
            {"annotations": sorted(self.annotations), "labels": sorted(self.labels)},
            separators=(",", ":"),
        )

    @classmethod
    def from_annotation(cls, value: str) -> ManagedKeys:
        """Parse the annotation value.

        Raises:
            ValueError: If the value is not the expected JSON document.
        """
        data = json.loads(value)
        if not isinstance(data, dict):
            raise ValueError("managed keys annotation must be a JSON object")
        labels = data.get("labels", [])
        annotations = data.get("annotations", [])
        if not isinstance(labels, list) or not isinstance(annotations, list):
            raise ValueError("managed keys must be lists")
        return cls(labels=frozenset(map(str, labels)), annotations=frozenset(map(str, annotations)))


def set_managed_keys_annotation(obj: Any) -> ManagedKeys:
    """Record the label/annotation keys ``obj`` sets in its managed-keys annotation."""
    managed = ManagedKeys.from_object(obj)
    _ensure_annotations(obj)[MANAGED_KEYS_ANNOTATION] = managed.to_annotation()
    return managed


def read_managed_keys(obj: Any) -> ManagedKeys:
    """Return the keys recorded on ``obj``.

    Objects written before the annotation existed, or carrying a value that
    does not parse, have an empty managed set: nothing is removed from them
    implicitly.
    """
    metadata = getattr(obj, "metadata", None)
    value = (getattr(metadata, "annotations", None) or {}).get(MANAGED_KEYS_ANNOTATION)
    if not value:
        return ManagedKeys()
    try:
        return ManagedKeys.from_annotation(value)
    except ValueError as e:
        logger.warning(
            "invalid_managed_keys_annotation",
            name=getattr(metadata, "name", None),
            namespace=getattr(metadata, "namespace", None),
            error=str(e),
        )
        return ManagedKeys()


def merge_managed_map(
    existing: Mapping[str, str] | None,
    required: Mapping[str, str] | None,
    previously_managed: frozenset[str],
) -> dict[str, str]:
    """Merge desired labels or annotations into the live ones.

    - keys in ``required`` are set to the required value;
    - ``foo-`` marker keys remove ``foo`` (and a literal ``foo-``);
    - keys managed previously but absent from ``required`` are removed;
    - every other live key is kept untouched.
    """
    required = required or {}
    result = dict(existing or {})

    for key in previously_managed:
        if key not in required:
            result.pop(key, None)

    for key, value in required.items():
        if is_removal_marker(key):
            result.pop(key, None)
            result.pop(key[: -len(REMOVAL_MARKER_SUFFIX)], None)
        else:
            result[key] = value

    return result
