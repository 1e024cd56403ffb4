"""Prune-then-apply pass over the children of one kind.

A pass deletes owned children that are no longer desired, then applies every
desired child, recording a progressing condition for each mutating action.
Deletes always come first so that names and quota held by a previous
generation cannot block the new one.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

import structlog

from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesAggregateError,
    KubernetesCancelledError,
    KubernetesError,
    KubernetesTimeoutError,
    SyncError,
)
from cluster_reconciler.integrations.kubernetes.models.base import _safe_get, is_terminating, object_ref
from cluster_reconciler.services.kubernetes.conditions import add_generic_progressing_status_condition
from cluster_reconciler.services.kubernetes.ownership import is_owned_by
from cluster_reconciler.services.kubernetes.resourceapply import ApplyOptions, apply_generic

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.cache import ObjectLister
    from cluster_reconciler.integrations.kubernetes.events import EventRecorder
    from cluster_reconciler.integrations.kubernetes.models.conditions import Condition
    from cluster_reconciler.services.kubernetes.context import RequestContext
    from cluster_reconciler.services.kubernetes.resourceapply import ApplyControl
    from cluster_reconciler.services.kubernetes.resources import ObjectClient

logger = structlog.get_logger()

_CONTEXT_ERRORS = (KubernetesCancelledError, KubernetesTimeoutError)


def get_owned_objects(
    lister: ObjectLister,
    namespace: str | None,
    selector: Mapping[str, str] | None,
    owner_uid: str,
) -> dict[str, Any]:
    """Return cached objects controlled by ``owner_uid``, keyed by name."""
    return {
        _safe_get(obj, "metadata", "name"): obj
        for obj in lister.list(namespace, selector)
        if is_owned_by(obj, owner_uid)
    }


def prune(
    ctx: RequestContext,
    client: ObjectClient,
    generation: int,
    condition_type: str,
    existing: Iterable[Any],
    keep: Collection[str],
    kind_plural: str = "objects",
) -> list[Condition]:
    """Delete every existing object whose name is not in ``keep``.

    Terminating objects are skipped. Each deletion is guarded by the object's
    UID and cascades in the background. A failed deletion does not stop the
    others.

    Returns:
        One ``delete`` progressing condition per attempted deletion.

    Raises:
        SyncError: Wrapping a :class:`KubernetesAggregateError` of every failed
            deletion; carries the progressing conditions.
    """
    log = logger.bind(entity="sync", condition_type=condition_type)
    conditions: list[Condition] = []
    errors: list[Exception] = []

    for obj in sorted(existing, key=object_ref):
        name = _safe_get(obj, "metadata", "name")
        if is_terminating(obj) or name in keep:
            continue

        add_generic_progressing_status_condition(conditions, condition_type, obj, "delete", generation)
        log.info("pruning_object", ref=object_ref(obj))
        try:
            client.delete(
                ctx,
                _safe_get(obj, "metadata", "namespace"),
                name,
                uid=_safe_get(obj, "metadata", "uid"),
            )
        except _CONTEXT_ERRORS:
            raise
        except KubernetesError as e:
            log.warning("prune_failed", ref=object_ref(obj), error=str(e))
            errors.append(e)

    if errors:
        aggregate = KubernetesAggregateError(errors)
        raise SyncError(f"can't delete {kind_plural}", conditions, aggregate) from aggregate
    return conditions


def sync_children(
    ctx: RequestContext,
    control: ApplyControl,
    recorder: EventRecorder,
    *,
    generation: int,
    condition_type: str,
    required: Sequence[Any],
    existing: Iterable[Any],
    options: ApplyOptions | None = None,
) -> list[Condition]:
    """Prune unwanted children, then apply each desired child in order.

    Returns:
        Progressing conditions for every delete and every changed apply.

    Raises:
        SyncError: On the first failure; ``progressing_conditions`` holds
            what was recorded up to that point.
    """
    options = options or ApplyOptions()
    keep = {_safe_get(obj, "metadata", "name") for obj in required}
    conditions = prune(
        ctx,
        control.client,
        generation,
        condition_type,
        existing,
        keep,
        kind_plural=control.kind.plural,
    )

    for obj in required:
        try:
            _, changed = apply_generic(ctx, control, recorder, obj, options)
        except _CONTEXT_ERRORS:
            raise
        except KubernetesError as e:
            raise SyncError(
                f'can\'t apply {control.kind.kind} "{object_ref(obj)}"', conditions, e
            ) from e
        if changed:
            add_generic_progressing_status_condition(conditions, condition_type, obj, "apply", generation)

    return conditions
