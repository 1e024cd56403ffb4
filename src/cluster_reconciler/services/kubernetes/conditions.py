"""Progressing/Degraded status conditions for a reconcile pass."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from cluster_reconciler.integrations.kubernetes.models.base import object_kind, object_ref
from cluster_reconciler.integrations.kubernetes.models.conditions import Condition, ConditionStatus

PROGRESSING_REASON = "Progressing"
AS_EXPECTED_REASON = "AsExpected"
ERROR_REASON = "Error"

PROGRESSING_CONDITION = "Progressing"
DEGRADED_CONDITION = "Degraded"


def add_generic_progressing_status_condition(
    conditions: list[Condition],
    condition_type: str,
    obj: Any,
    verb: str,
    generation: int,
) -> Condition:
    """Append a ``Progressing`` condition for a mutating action on ``obj``."""
    condition = Condition(
        type=condition_type,
        status="True",
        reason=PROGRESSING_REASON,
        message=f'Waiting for {object_kind(obj)} "{object_ref(obj)}" to {verb}.',
        observed_generation=generation,
    )
    conditions.append(condition)
    return condition


def make_condition(
    condition_type: str,
    status: ConditionStatus,
    generation: int,
    reason: str = AS_EXPECTED_REASON,
    message: str = "",
) -> Condition:
    """Build a condition with the common defaults."""
    return Condition(
        type=condition_type,
        status=status,
        reason=reason,
        message=message,
        observed_generation=generation,
    )


def find_status_condition(conditions: Iterable[Condition], condition_type: str) -> Condition | None:
    """Return the condition with ``condition_type``, if present."""
    for condition in conditions:
        if condition.type == condition_type:
            return condition
    return None


def set_status_condition(conditions: list[Condition], condition: Condition) -> None:
    """Insert or replace the condition of the same type.

    The existing transition time is kept when the status did not change.
    """
    for i, current in enumerate(conditions):
        if current.type != condition.type:
            continue
        if current.status == condition.status:
            condition = condition.model_copy(update={"last_transition_time": current.last_transition_time})
        conditions[i] = condition
        return
    conditions.append(condition)


def find_status_conditions_with_suffix(conditions: Iterable[Condition], suffix: str) -> list[Condition]:
    """Return the per-controller conditions ending with ``suffix`` (``suffix`` itself excluded)."""
    return [c for c in conditions if c.type.endswith(suffix) and c.type != suffix]


def aggregate_status_conditions(
    conditions: Iterable[Condition],
    condition_type: str,
    generation: int,
) -> Condition:
    """Roll ``conditions`` up into one condition of ``condition_type``.

    The result is True when any input is True, joining their reasons and
    messages; otherwise it is False with reason ``AsExpected``.
    """
    reasons: list[str] = []
    messages: list[str] = []
    for condition in conditions:
        if condition.status != "True":
            continue
        if condition.reason not in reasons:
            reasons.append(condition.reason)
        if condition.message:
            messages.append(f"{condition.type}: {condition.message}")

    if not reasons:
        return make_condition(condition_type, "False", generation)
    return make_condition(
        condition_type,
        "True",
        generation,
        reason=",".join(reasons),
        message="\n".join(messages),
    )
