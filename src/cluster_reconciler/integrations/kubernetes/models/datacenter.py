"""ScyllaDBDatacenter parent resource model."""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cluster_reconciler.integrations.kubernetes.models.base import OwnerReference
from cluster_reconciler.integrations.kubernetes.models.conditions import Condition

SCYLLA_GROUP = "scylla.scylladb.com"
SCYLLA_VERSION = "v1alpha1"
DATACENTER_KIND = "ScyllaDBDatacenter"
DATACENTER_PLURAL = "scylladbdatacenters"


class RackSpec(BaseModel):
    """One rack of a datacenter."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    members: int = 0

    @field_validator("members")
    @classmethod
    def validate_members(cls, v: int) -> int:
        """Validate member count is non-negative."""
        if v < 0:
            raise ValueError("members must be non-negative")
        return v


class ScyllaDBDatacenter(BaseModel):
    """The parent object whose spec drives one reconcile pass."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    api_version: ClassVar[str] = f"{SCYLLA_GROUP}/{SCYLLA_VERSION}"
    kind: ClassVar[str] = DATACENTER_KIND

    name: str
    namespace: str
    uid: str
    generation: int = 0
    cluster_name: str = Field(alias="clusterName")
    datacenter_name: str | None = Field(default=None, alias="datacenterName")
    racks: list[RackSpec] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)

    @classmethod
    def from_k8s_object(cls, obj: dict[str, Any]) -> ScyllaDBDatacenter:
        """Build from a custom object as returned by CustomObjectsApi."""
        metadata = obj.get("metadata") or {}
        spec = obj.get("spec") or {}
        status = obj.get("status") or {}
        return cls(
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            uid=metadata.get("uid", ""),
            generation=metadata.get("generation", 0),
            cluster_name=spec.get("clusterName") or metadata.get("name", ""),
            datacenter_name=spec.get("datacenterName"),
            racks=[RackSpec.model_validate(r) for r in spec.get("racks") or []],
            conditions=[Condition.model_validate(c) for c in status.get("conditions") or []],
        )

    @property
    def effective_datacenter_name(self) -> str:
        """Datacenter name, defaulting to the object name."""
        return self.datacenter_name or self.name

    def controller_ref(self) -> OwnerReference:
        """The controller owner reference every child carries."""
        return OwnerReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.name,
            uid=self.uid,
            controller=True,
            block_owner_deletion=True,
        )
