"""Status condition model handed to the status writer."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ConditionStatus = Literal["True", "False", "Unknown"]


class Condition(BaseModel):
    """A metav1.Condition-shaped status condition."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    type: str = Field(description="Condition type, e.g. ServiceControllerProgressing")
    status: ConditionStatus = Field(description="True, False or Unknown")
    reason: str = Field(description="CamelCase machine-readable reason")
    message: str = Field(default="", description="Human-readable detail")
    observed_generation: int = Field(
        default=0,
        alias="observedGeneration",
        description="Parent generation the condition was computed from",
    )
    last_transition_time: datetime = Field(
        default_factory=lambda: datetime.now(UTC).replace(microsecond=0),
        alias="lastTransitionTime",
    )

    def same_state(self, other: Condition) -> bool:
        """Compare everything except the transition timestamp."""
        return (
            self.type == other.type
            and self.status == other.status
            and self.reason == other.reason
            and self.message == other.message
            and self.observed_generation == other.observed_generation
        )

    def to_k8s_dict(self) -> dict[str, Any]:
        """Render with camelCase keys as stored in ``status.conditions``."""
        data = self.model_dump(by_alias=True)
        data["lastTransitionTime"] = self.last_transition_time.strftime("%Y-%m-%dT%H:%M:%SZ")
        return data
