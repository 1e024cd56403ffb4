"""Kubernetes API client wrapper.

Wraps the official kubernetes Python client with lazy API group
initialization, retry logic for transient connection failures, and
consistent error translation.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesAuthError,
    KubernetesConflictError,
    KubernetesConnectionError,
    KubernetesError,
    KubernetesNotFoundError,
    KubernetesTimeoutError,
    KubernetesValidationError,
)

if TYPE_CHECKING:
    from kubernetes.client import ApiClient, CoreV1Api, CustomObjectsApi

    from cluster_reconciler.integrations.kubernetes.config import OperatorConfig

logger = structlog.get_logger()


class KubernetesClient:
    """Kubernetes API client used by the reconciler.

    Wraps the official kubernetes Python client with:
    - kubeconfig or in-cluster configuration loading
    - Lazy API group initialization
    - Automatic retry with tenacity for connection errors
    - Consistent error translation to custom exceptions
    - Context manager support

    Example:
        ```python
        from cluster_reconciler.integrations.kubernetes import KubernetesClient
        from cluster_reconciler.integrations.kubernetes.config import OperatorConfig

        config = OperatorConfig.from_env()
        with KubernetesClient(config) as client:
            services = client.core_v1.list_namespaced_service("default")
        ```
    """

    def __init__(self, config: OperatorConfig) -> None:
        """Initialize Kubernetes client from operator config.

        Args:
            config: Complete operator configuration.
        """
        self._config = config
        self._retries = config.defaults.retry_attempts
        self._current_context: str | None = None

        # Lazy-loaded API group instances
        self._api_client: ApiClient | None = None
        self._core_v1: CoreV1Api | None = None
        self._custom_objects: CustomObjectsApi | None = None

        self._load_config()

        logger.info(
            "kubernetes_client_initialized",
            context=self._current_context,
            default_namespace=config.cluster.namespace,
        )

    def _load_config(self) -> None:
        """Load Kubernetes configuration from in-cluster or kubeconfig."""
        from kubernetes import config
        from kubernetes.config import ConfigException

        cluster_cfg = self._config.cluster

        if cluster_cfg.in_cluster:
            try:
                config.load_incluster_config()
            except ConfigException as e:
                raise KubernetesConnectionError(
                    message="Cannot load in-cluster Kubernetes configuration",
                    original_error=e,
                ) from e
            self._current_context = "in-cluster"
            logger.debug("loaded_incluster_config")
        else:
            try:
                config.load_kube_config(
                    config_file=cluster_cfg.kubeconfig,
                    context=cluster_cfg.context,
                )
                self._current_context = cluster_cfg.context
                logger.debug(
                    "loaded_kubeconfig",
                    context=cluster_cfg.context,
                    kubeconfig=cluster_cfg.kubeconfig,
                )
            except ConfigException:
                try:
                    config.load_incluster_config()
                    self._current_context = "in-cluster"
                    logger.debug("loaded_incluster_config")
                except ConfigException as e:
                    raise KubernetesConnectionError(
                        message="Cannot load Kubernetes configuration. "
                        "Ensure kubeconfig exists or running inside a cluster.",
                        original_error=e,
                    ) from e

        self._invalidate_api_cache()

    def _invalidate_api_cache(self) -> None:
        """Clear cached API group instances."""
        self._api_client = None
        self._core_v1 = None
        self._custom_objects = None

    # =========================================================================
    # Lazy API Group Accessors
    # =========================================================================

    @property
    def api_client(self) -> ApiClient:
        """Get the shared ApiClient (serialization and transport)."""
        if self._api_client is None:
            from kubernetes.client import ApiClient

            self._api_client = ApiClient()
        return self._api_client

    @property
    def core_v1(self) -> CoreV1Api:
        """Get CoreV1Api instance (services, secrets, configmaps, pods, events, ...)."""
        if self._core_v1 is None:
            from kubernetes.client import CoreV1Api

            self._core_v1 = CoreV1Api(self.api_client)
        return self._core_v1

    @property
    def custom_objects(self) -> CustomObjectsApi:
        """Get CustomObjectsApi instance (parent custom resources and their status)."""
        if self._custom_objects is None:
            from kubernetes.client import CustomObjectsApi

            self._custom_objects = CustomObjectsApi(self.api_client)
        return self._custom_objects

    def get_current_context(self) -> str:
        """Get the current active context name."""
        return self._current_context or "unknown"

    # =========================================================================
    # Error Translation
    # =========================================================================

    @staticmethod
    def translate_api_exception(
        e: Exception,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> KubernetesError:
        """Translate a kubernetes ApiException to a custom exception.

        Args:
            e: The original ApiException.
            resource_type: Type of resource being operated on.
            resource_name: Name of the resource.
            namespace: Namespace of the resource.

        Returns:
            An appropriate KubernetesError subclass.
        """
        from kubernetes.client import ApiException
        from urllib3.exceptions import HTTPError, ReadTimeoutError

        if isinstance(e, KubernetesError):
            return e

        if isinstance(e, ReadTimeoutError):
            return KubernetesTimeoutError(message=f"Request timed out: {e}")

        if isinstance(e, HTTPError):
            return KubernetesConnectionError(message=str(e), original_error=e)

        if not isinstance(e, ApiException):
            return KubernetesError(
                message=str(e),
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        status = e.status

        if status in (401, 403):
            return KubernetesAuthError(
                message=e.reason or "Authentication/authorization failed",
                status_code=status,
                reason=e.reason,
            )

        if status == 404:
            return KubernetesNotFoundError(
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
            )

        if status == 409:
            return KubernetesConflictError(
                message=e.reason or "Resource conflict",
                resource_type=resource_type,
                resource_name=resource_name,
                namespace=namespace,
                reason=_status_reason(e),
            )

        if status in (400, 422):
            return KubernetesValidationError(
                message=e.reason or "Validation failed",
                status_code=status,
            )

        if status == 504:
            return KubernetesTimeoutError(message=e.reason or "Gateway timeout")

        return KubernetesError(
            message=e.reason or f"Kubernetes API error: {status}",
            status_code=status,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )

    # =========================================================================
    # Retry Decorator
    # =========================================================================

    def make_retry_decorator(self) -> Any:
        """Create a retry decorator for transient connection errors.

        Only connection failures are retried. Conflicts, validation and
        ownership errors are left to the next reconcile pass.

        Returns:
            A tenacity retry decorator configured with exponential backoff.
        """
        return retry(
            retry=retry_if_exception_type(KubernetesConnectionError),
            stop=stop_after_attempt(self._retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            reraise=True,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def default_namespace(self) -> str:
        """Get the default namespace from config."""
        return self._config.cluster.namespace

    @property
    def request_timeout(self) -> float:
        """Get the configured per-request timeout in seconds."""
        return self._config.defaults.request_timeout

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Close the client and release resources."""
        if self._api_client is not None:
            self._api_client.close()
        self._invalidate_api_cache()
        logger.debug("kubernetes_client_closed")

    def __enter__(self) -> KubernetesClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()


def _status_reason(e: Any) -> str | None:
    """Extract the machine-readable reason from an ApiException body."""
    body = getattr(e, "body", None)
    if not body:
        return None
    try:
        payload = json.loads(body)
    except (TypeError, ValueError):
        return None
    if isinstance(payload, dict):
        reason = payload.get("reason")
        return reason if isinstance(reason, str) else None
    return None
