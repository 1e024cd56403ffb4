"""Ownership checks for child objects.

Decides whether the reconciler may mutate or delete a live object, based on
the controller owner references of the live object and of the desired one.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesValidationError,
    MissingControllerRefError,
    OwnershipConflictError,
)
from cluster_reconciler.integrations.kubernetes.models.base import (
    OwnerReference,
    get_owner_references,
    object_ref,
)

if TYPE_CHECKING:
    from cluster_reconciler.services.kubernetes.resourceapply import ApplyOptions


class OwnershipDecision(str, Enum):
    """Outcome of comparing live and desired controller references."""

    CONTROLLED = "Controlled"
    DRIFTED = "Drifted"
    ADOPTABLE = "Adoptable"
    UNOWNED = "Unowned"
    FOREIGN = "Foreign"


def get_controller_refs(obj: Any) -> list[OwnerReference]:
    """Return every owner reference with ``controller=True``."""
    return [ref for ref in get_owner_references(obj) if ref.controller]


def get_controller_ref(obj: Any) -> OwnerReference | None:
    """Return the controller owner reference of ``obj``, if any."""
    refs = get_controller_refs(obj)
    return refs[0] if refs else None


def validate_controller_ref(obj: Any, kind: str, options: ApplyOptions) -> OwnerReference | None:
    """Check the desired object's controller reference before any store call.

    Raises:
        MissingControllerRefError: No controller reference and none allowed.
        KubernetesValidationError: More than one controller reference.
    """
    refs = get_controller_refs(obj)
    if len(refs) > 1:
        raise KubernetesValidationError(
            message=f'{kind} "{object_ref(obj)}" has {len(refs)} controllerRefs',
            status_code=None,
        )
    if not refs:
        if not options.allow_missing_controller_ref:
            raise MissingControllerRefError(kind, object_ref(obj))
        return None
    return refs[0]


def check_ownership(existing: Any, required: Any) -> OwnershipDecision:
    """Classify the relationship between the live and the desired owner."""
    existing_ref = get_controller_ref(existing)
    required_ref = get_controller_ref(required)

    if existing_ref is None:
        if required_ref is None:
            return OwnershipDecision.UNOWNED
        return OwnershipDecision.ADOPTABLE

    if required_ref is None or existing_ref.uid != required_ref.uid:
        return OwnershipDecision.FOREIGN

    if existing_ref.same_identity(required_ref):
        return OwnershipDecision.CONTROLLED
    return OwnershipDecision.DRIFTED


def is_controlled_by(existing: Any, required: Any, force_ownership: bool = False) -> bool:
    """True when the reconciler may update ``existing`` towards ``required``.

    A stale kind, apiVersion or name under the same UID is corrected. An
    orphan is only adopted with ``force_ownership``. A different UID is never
    taken over.
    """
    decision = check_ownership(existing, required)
    if decision is OwnershipDecision.ADOPTABLE:
        return force_ownership
    return decision is not OwnershipDecision.FOREIGN


def ensure_controlled(existing: Any, required: Any, kind: str, force_ownership: bool = False) -> None:
    """Raise :class:`OwnershipConflictError` unless ``existing`` may be updated."""
    if not is_controlled_by(existing, required, force_ownership):
        raise OwnershipConflictError(kind, object_ref(existing))


def is_owned_by(obj: Any, owner_uid: str) -> bool:
    """True when ``obj`` has a controller reference to ``owner_uid``."""
    ref = get_controller_ref(obj)
    return ref is not None and ref.uid == owner_uid
