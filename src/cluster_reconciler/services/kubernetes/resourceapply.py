"""Converge one child object to its desired state.

:func:`apply_generic` holds the whole decision table: create when absent,
refuse when owned by someone else, skip when the content hash matches, and
update otherwise. The per-kind functions bind a :class:`KindSpec` and share
that logic.

Neither the desired object nor the cached object is ever modified. Request
bodies are built from fresh copies.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from cluster_reconciler.integrations.kubernetes.events import EVENT_TYPE_NORMAL, EVENT_TYPE_WARNING
from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesCancelledError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesUpdateNotFoundError,
    KubernetesValidationError,
    OwnershipConflictError,
)
from cluster_reconciler.integrations.kubernetes.kinds import (
    CONFIG_MAP,
    ENDPOINTS,
    NAMESPACE,
    PERSISTENT_VOLUME_CLAIM,
    POD,
    SECRET,
    SERVICE,
    SERVICE_ACCOUNT,
)
from cluster_reconciler.integrations.kubernetes.models.base import _safe_get, object_ref
from cluster_reconciler.services.kubernetes.hashing import (
    merge_managed_map,
    read_hash_annotation,
    read_managed_keys,
    set_hash_annotation,
    set_managed_keys_annotation,
    strip_removal_markers,
)
from cluster_reconciler.services.kubernetes.ownership import is_controlled_by, validate_controller_ref

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.cache import ObjectLister
    from cluster_reconciler.integrations.kubernetes.events import EventRecorder
    from cluster_reconciler.integrations.kubernetes.kinds import KindSpec
    from cluster_reconciler.services.kubernetes.context import RequestContext
    from cluster_reconciler.services.kubernetes.resources import ObjectClient

logger = structlog.get_logger()

# Context errors abort the call without an event.
_CONTEXT_ERRORS = (KubernetesCancelledError, KubernetesTimeoutError)


@dataclass(frozen=True)
class ApplyOptions:
    """Per-call apply policy.

    Attributes:
        force_ownership: Adopt an existing object that has no controller.
        allow_missing_controller_ref: Accept a desired object without a
            controller owner reference.
    """

    force_ownership: bool = False
    allow_missing_controller_ref: bool = False


@dataclass(frozen=True)
class ApplyControl:
    """What the engine needs to touch one kind: its spec, store client and lister."""

    kind: KindSpec
    client: ObjectClient
    lister: ObjectLister


def _validate_required(kind_spec: KindSpec, required: Any) -> None:
    name = _safe_get(required, "metadata", "name")
    if not name:
        raise KubernetesValidationError(
            message=f"{kind_spec.kind} is missing metadata.name",
            status_code=None,
        )
    if kind_spec.namespaced and not _safe_get(required, "metadata", "namespace"):
        raise KubernetesValidationError(
            message=f'{kind_spec.kind} "{name}" is missing metadata.namespace',
            status_code=None,
        )


def make_create_body(required: Any) -> Any:
    """Return the create request body for an annotated desired object."""
    body = copy.deepcopy(required)
    metadata = body.metadata
    metadata.resource_version = None
    if metadata.labels is not None:
        metadata.labels = strip_removal_markers(metadata.labels)
    if metadata.annotations is not None:
        metadata.annotations = strip_removal_markers(metadata.annotations)
    return body


def make_update_body(kind_spec: KindSpec, existing: Any, required: Any) -> Any:
    """Return the update request body.

    Starts from a copy of ``existing`` so that status and keys set by other
    writers survive, then layers the desired state on top.
    """
    body = copy.deepcopy(existing)
    metadata = body.metadata
    required_metadata = required.metadata

    if required_metadata.resource_version:
        metadata.resource_version = required_metadata.resource_version

    kind_spec.overlay(body, required)

    metadata.owner_references = copy.deepcopy(required_metadata.owner_references)
    if required_metadata.finalizers is not None:
        metadata.finalizers = list(required_metadata.finalizers)

    managed = read_managed_keys(existing)
    metadata.labels = merge_managed_map(metadata.labels, required_metadata.labels, managed.labels)
    metadata.annotations = merge_managed_map(
        metadata.annotations, required_metadata.annotations, managed.annotations
    )

    if kind_spec.preserve is not None:
        kind_spec.preserve(body, existing)
    return body


def apply_generic(
    ctx: RequestContext,
    control: ApplyControl,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Make the live object match ``required``.

    Args:
        ctx: Bounds every store call.
        control: Kind spec, store client and lister for the object's kind.
        recorder: Receives one event per create, update or ownership failure.
        required: The desired object. Left untouched.
        options: Apply policy; defaults to strict ownership.

    Returns:
        The resulting object and whether a write happened.

    Raises:
        MissingControllerRefError: ``required`` has no controller reference.
        OwnershipConflictError: The live object belongs to another controller.
        KubernetesUpdateNotFoundError: The object vanished before the update.
        KubernetesError: Any other store failure, unchanged.
    """
    options = options or ApplyOptions()
    kind = control.kind.kind
    log = logger.bind(entity="apply", kind=kind)

    _validate_required(control.kind, required)
    validate_controller_ref(required, kind, options)

    required_copy = copy.deepcopy(required)
    set_managed_keys_annotation(required_copy)
    required_hash = set_hash_annotation(required_copy)

    namespace = required_copy.metadata.namespace if control.kind.namespaced else None
    name = required_copy.metadata.name
    existing = control.lister.get(namespace, name)

    if existing is None:
        body = make_create_body(required_copy)
        try:
            created = control.client.create(ctx, body)
        except _CONTEXT_ERRORS:
            raise
        except KubernetesError as e:
            recorder.event(
                required_copy,
                EVENT_TYPE_WARNING,
                f"Create{kind}Failed",
                f"Failed to create {kind} {object_ref(body)}: {e}",
            )
            raise
        ref = object_ref(created)
        recorder.event(created, EVENT_TYPE_NORMAL, f"{kind}Created", f"{kind} {ref} created")
        log.info("applied_object", action="created", ref=ref)
        return created, True

    ref = object_ref(existing)
    if not is_controlled_by(existing, required_copy, options.force_ownership):
        error = OwnershipConflictError(kind, ref)
        recorder.event(
            existing,
            EVENT_TYPE_WARNING,
            f"Update{kind}Failed",
            f"Failed to update {kind} {ref}: {error}",
        )
        log.warning("ownership_conflict", ref=ref)
        raise error

    if read_hash_annotation(existing) == required_hash:
        log.debug("object_up_to_date", ref=ref)
        return existing, False

    body = make_update_body(control.kind, existing, required_copy)
    try:
        updated = control.client.update(ctx, body)
    except _CONTEXT_ERRORS:
        raise
    except KubernetesError as e:
        recorder.event(
            existing,
            EVENT_TYPE_WARNING,
            f"Update{kind}Failed",
            f"Failed to update {kind} {ref}: {e}",
        )
        if isinstance(e, KubernetesNotFoundError):
            raise KubernetesUpdateNotFoundError(kind, ref, e) from e
        raise
    recorder.event(updated, EVENT_TYPE_NORMAL, f"{kind}Updated", f"{kind} {ref} updated")
    log.info("applied_object", action="updated", ref=ref)
    return updated, True


def _apply_kind(
    kind_spec: KindSpec,
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None,
) -> tuple[Any, bool]:
    return apply_generic(ctx, ApplyControl(kind_spec, client, lister), recorder, required, options)


def apply_service(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a Service, keeping its allocated cluster IPs and health check port."""
    return _apply_kind(SERVICE, ctx, client, lister, recorder, required, options)


def apply_secret(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a Secret."""
    return _apply_kind(SECRET, ctx, client, lister, recorder, required, options)


def apply_config_map(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a ConfigMap."""
    return _apply_kind(CONFIG_MAP, ctx, client, lister, recorder, required, options)


def apply_service_account(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a ServiceAccount; token secrets added by the cluster are kept."""
    return _apply_kind(SERVICE_ACCOUNT, ctx, client, lister, recorder, required, options)


def apply_namespace(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a Namespace."""
    return _apply_kind(NAMESPACE, ctx, client, lister, recorder, required, options)


def apply_endpoints(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply Endpoints."""
    return _apply_kind(ENDPOINTS, ctx, client, lister, recorder, required, options)


def apply_pod(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a Pod."""
    return _apply_kind(POD, ctx, client, lister, recorder, required, options)


def apply_persistent_volume_claim(
    ctx: RequestContext,
    client: ObjectClient,
    lister: ObjectLister,
    recorder: EventRecorder,
    required: Any,
    options: ApplyOptions | None = None,
) -> tuple[Any, bool]:
    """Apply a PersistentVolumeClaim, keeping fields filled in by the binder."""
    return _apply_kind(PERSISTENT_VOLUME_CLAIM, ctx, client, lister, recorder, required, options)
