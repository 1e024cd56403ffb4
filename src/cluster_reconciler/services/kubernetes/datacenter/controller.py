"""Reconcile pass for one ScyllaDBDatacenter.

Each child kind is synced by its own step. A step's progressing conditions
and its error, if any, become ``<Kind>ControllerProgressing`` and
``<Kind>ControllerDegraded`` conditions, which are then rolled up into the
parent's ``Progressing`` and ``Degraded`` conditions and written to status.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesAggregateError,
    KubernetesCancelledError,
    KubernetesError,
    KubernetesTimeoutError,
    SyncError,
)
from cluster_reconciler.integrations.kubernetes.kinds import SERVICE, SERVICE_ACCOUNT
from cluster_reconciler.services.kubernetes.base import K8sBaseManager
from cluster_reconciler.services.kubernetes.conditions import (
    DEGRADED_CONDITION,
    ERROR_REASON,
    PROGRESSING_CONDITION,
    aggregate_status_conditions,
    find_status_conditions_with_suffix,
    make_condition,
    set_status_condition,
)
from cluster_reconciler.services.kubernetes.datacenter.resources import (
    cluster_labels,
    make_service_account,
    make_services,
)
from cluster_reconciler.services.kubernetes.resourceapply import ApplyControl, ApplyOptions
from cluster_reconciler.services.kubernetes.resources import ResourceClient
from cluster_reconciler.services.kubernetes.sync import get_owned_objects, sync_children

if TYPE_CHECKING:
    from cluster_reconciler.integrations.kubernetes.cache import ObjectLister
    from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
    from cluster_reconciler.integrations.kubernetes.events import EventRecorder
    from cluster_reconciler.integrations.kubernetes.models.conditions import Condition
    from cluster_reconciler.integrations.kubernetes.models.datacenter import ScyllaDBDatacenter
    from cluster_reconciler.services.kubernetes.context import RequestContext
    from cluster_reconciler.services.kubernetes.status import StatusWriter

SERVICE_ACCOUNT_CONTROLLER = "ServiceAccountController"
SERVICE_CONTROLLER = "ServiceController"

SyncStep = Callable[["RequestContext", "ScyllaDBDatacenter", Mapping[str, Any]], "list[Condition]"]


class DatacenterController(K8sBaseManager):
    """Drives service accounts and services of a datacenter to their desired state."""

    _entity_name = "datacenter"

    def __init__(
        self,
        client: KubernetesClient,
        recorder: EventRecorder,
        status_writer: StatusWriter,
        *,
        service_accounts: ApplyControl,
        services: ApplyControl,
    ) -> None:
        super().__init__(client)
        self._recorder = recorder
        self._status_writer = status_writer
        self._service_accounts = service_accounts
        self._services = services

    @classmethod
    def from_listers(
        cls,
        client: KubernetesClient,
        recorder: EventRecorder,
        status_writer: StatusWriter,
        listers: Mapping[str, ObjectLister],
    ) -> DatacenterController:
        """Build a controller that writes through ``client`` and reads ``listers`` (keyed by kind)."""
        return cls(
            client,
            recorder,
            status_writer,
            service_accounts=ApplyControl(
                SERVICE_ACCOUNT,
                ResourceClient(client, SERVICE_ACCOUNT),
                listers[SERVICE_ACCOUNT.kind],
            ),
            services=ApplyControl(SERVICE, ResourceClient(client, SERVICE), listers[SERVICE.kind]),
        )

    # =========================================================================
    # Per-kind steps
    # =========================================================================

    def sync_service_accounts(
        self,
        ctx: RequestContext,
        sdc: ScyllaDBDatacenter,
        existing: Mapping[str, Any],
    ) -> list[Condition]:
        """Keep exactly the member ServiceAccount, adopting an orphaned one."""
        return sync_children(
            ctx,
            self._service_accounts,
            self._recorder,
            generation=sdc.generation,
            condition_type=f"{SERVICE_ACCOUNT_CONTROLLER}{PROGRESSING_CONDITION}",
            required=[make_service_account(sdc)],
            existing=existing.values(),
            options=ApplyOptions(force_ownership=True),
        )

    def sync_services(
        self,
        ctx: RequestContext,
        sdc: ScyllaDBDatacenter,
        existing: Mapping[str, Any],
    ) -> list[Condition]:
        """Keep the identity service and one service per member."""
        return sync_children(
            ctx,
            self._services,
            self._recorder,
            generation=sdc.generation,
            condition_type=f"{SERVICE_CONTROLLER}{PROGRESSING_CONDITION}",
            required=make_services(sdc),
            existing=existing.values(),
        )

    # =========================================================================
    # Pass
    # =========================================================================

    def sync(self, ctx: RequestContext, sdc: ScyllaDBDatacenter) -> list[Condition]:
        """Run one reconcile pass and write the resulting conditions.

        Returns:
            The full condition list written to status.

        Raises:
            KubernetesAggregateError: When any step failed, after status was written.
            KubernetesCancelledError: When ``ctx`` was cancelled; status is not written.
        """
        log = self._log.bind(name=sdc.name, namespace=sdc.namespace, generation=sdc.generation)
        log.info("syncing_datacenter")

        selector = cluster_labels(sdc)
        conditions = list(sdc.conditions)
        errors: list[Exception] = []

        steps: list[tuple[str, ApplyControl, SyncStep]] = [
            (SERVICE_ACCOUNT_CONTROLLER, self._service_accounts, self.sync_service_accounts),
            (SERVICE_CONTROLLER, self._services, self.sync_services),
        ]
        for controller_name, control, step in steps:
            existing = get_owned_objects(control.lister, sdc.namespace, selector, sdc.uid)
            error = self._run_step(ctx, sdc, conditions, controller_name, existing, step)
            if error is not None:
                errors.append(error)

        for condition_type in (PROGRESSING_CONDITION, DEGRADED_CONDITION):
            set_status_condition(
                conditions,
                aggregate_status_conditions(
                    find_status_conditions_with_suffix(conditions, condition_type),
                    condition_type,
                    sdc.generation,
                ),
            )

        self._status_writer.write(ctx, sdc, conditions)

        if errors:
            log.warning("datacenter_sync_failed", errors=len(errors))
            raise KubernetesAggregateError(errors)
        log.info("synced_datacenter")
        return conditions

    def _run_step(
        self,
        ctx: RequestContext,
        sdc: ScyllaDBDatacenter,
        conditions: list[Condition],
        controller_name: str,
        existing: Mapping[str, Any],
        step: SyncStep,
    ) -> Exception | None:
        progressing_type = f"{controller_name}{PROGRESSING_CONDITION}"
        degraded_type = f"{controller_name}{DEGRADED_CONDITION}"
        error: Exception | None = None

        try:
            progressing = step(ctx, sdc, existing)
        except (KubernetesCancelledError, KubernetesTimeoutError):
            raise
        except SyncError as e:
            progressing = e.progressing_conditions
            error = e
        except KubernetesError as e:
            progressing = []
            error = e

        if progressing:
            progressing_condition = aggregate_status_conditions(progressing, progressing_type, sdc.generation)
        else:
            progressing_condition = make_condition(progressing_type, "False", sdc.generation)
        set_status_condition(conditions, progressing_condition)

        if error is None:
            degraded_condition = make_condition(degraded_type, "False", sdc.generation)
        else:
            self._log.warning("sync_step_failed", controller=controller_name, error=str(error))
            degraded_condition = make_condition(
                degraded_type, "True", sdc.generation, reason=ERROR_REASON, message=str(error)
            )
        set_status_condition(conditions, degraded_condition)
        return error
