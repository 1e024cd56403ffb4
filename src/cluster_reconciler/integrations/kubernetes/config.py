"""Reconciler configuration models."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

ENV_PREFIX = "CLUSTER_RECONCILER_"


class ClusterConfig(BaseModel):
    """Connection settings for the cluster the reconciler manages."""

    model_config = ConfigDict(extra="forbid")

    context: str | None = None
    kubeconfig: str | None = None
    namespace: str = "default"
    in_cluster: bool = False

    @field_validator("kubeconfig")
    @classmethod
    def validate_kubeconfig(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())


class ReconcileDefaultsConfig(BaseModel):
    """Timeouts and retry settings shared by all reconcile passes."""

    model_config = ConfigDict(extra="forbid")

    request_timeout: float = 30.0
    retry_attempts: int = 3
    resync_period: int = 600

    @field_validator("request_timeout")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        """Validate request timeout is positive."""
        if v <= 0:
            raise ValueError("request_timeout must be positive")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        """Validate retry_attempts is at least one attempt."""
        if v < 1:
            raise ValueError("retry_attempts must be at least 1")
        return v

    @field_validator("resync_period")
    @classmethod
    def validate_resync_period(cls, v: int) -> int:
        """Validate resync_period is non-negative."""
        if v < 0:
            raise ValueError("resync_period must be non-negative")
        return v


class EventsConfig(BaseModel):
    """Settings for the Kubernetes event sink."""

    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    component: str = "scylla-operator"


class OperatorConfig(BaseModel):
    """Complete reconciler configuration."""

    model_config = ConfigDict(extra="forbid")

    cluster: ClusterConfig = ClusterConfig()
    defaults: ReconcileDefaultsConfig = ReconcileDefaultsConfig()
    events: EventsConfig = EventsConfig()

    @classmethod
    def from_file(cls, path: Path) -> OperatorConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML document.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ValueError: If the file is not a YAML mapping.
        """
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_env(data)

    @classmethod
    def from_env(cls, base_config: dict[str, Any] | None = None) -> OperatorConfig:
        """Create configuration with environment variable overrides.

        Environment variables take precedence over base_config values.

        Supported environment variables:
            CLUSTER_RECONCILER_KUBECONFIG: Kubeconfig path
            CLUSTER_RECONCILER_CONTEXT: Kubeconfig context
            CLUSTER_RECONCILER_NAMESPACE: Default namespace
            CLUSTER_RECONCILER_IN_CLUSTER: Use the pod service account ("true"/"false")
            CLUSTER_RECONCILER_REQUEST_TIMEOUT: Per-request deadline in seconds
            CLUSTER_RECONCILER_RETRY_ATTEMPTS: Connection retry attempts
            CLUSTER_RECONCILER_RESYNC_PERIOD: Cache resync period in seconds
            CLUSTER_RECONCILER_EVENT_COMPONENT: Event source component name
        """
        config_dict = {k: dict(v) if isinstance(v, dict) else v for k, v in (base_config or {}).items()}
        cluster = config_dict.setdefault("cluster", {})
        defaults = config_dict.setdefault("defaults", {})
        events = config_dict.setdefault("events", {})

        if kubeconfig := os.environ.get(f"{ENV_PREFIX}KUBECONFIG"):
            cluster["kubeconfig"] = kubeconfig
        if context := os.environ.get(f"{ENV_PREFIX}CONTEXT"):
            cluster["context"] = context
        if namespace := os.environ.get(f"{ENV_PREFIX}NAMESPACE"):
            cluster["namespace"] = namespace
        if in_cluster := os.environ.get(f"{ENV_PREFIX}IN_CLUSTER"):
            cluster["in_cluster"] = in_cluster.strip().lower() in {"1", "true", "yes"}

        if timeout := os.environ.get(f"{ENV_PREFIX}REQUEST_TIMEOUT"):
            defaults["request_timeout"] = float(timeout)
        if retries := os.environ.get(f"{ENV_PREFIX}RETRY_ATTEMPTS"):
            defaults["retry_attempts"] = int(retries)
        if resync := os.environ.get(f"{ENV_PREFIX}RESYNC_PERIOD"):
            defaults["resync_period"] = int(resync)

        if component := os.environ.get(f"{ENV_PREFIX}EVENT_COMPONENT"):
            events["component"] = component

        return cls.model_validate(config_dict)
