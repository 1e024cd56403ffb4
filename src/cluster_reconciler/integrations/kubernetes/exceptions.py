"""Kubernetes integration custom exceptions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class KubernetesError(Exception):
    """Base exception for Kubernetes operations.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code from Kubernetes API (if applicable).
        resource_type: Type of resource involved (e.g., "Service", "Secret").
        resource_name: Name of the resource involved.
        namespace: Namespace of the resource (if applicable).
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        """Initialize KubernetesError.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code from Kubernetes API.
            resource_type: Type of resource involved.
            resource_name: Name of the resource involved.
            namespace: Namespace of the resource.
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.resource_type = resource_type
        self.resource_name = resource_name
        self.namespace = namespace

    def __str__(self) -> str:
        """Return string representation of the error."""
        parts = [self.message]
        if self.status_code:
            parts.append(f"(status: {self.status_code})")
        if self.resource_type and self.resource_name:
            loc = f"[{self.resource_type}/{self.resource_name}"
            if self.namespace:
                loc += f" in {self.namespace}"
            loc += "]"
            parts.append(loc)
        return " ".join(parts)


class KubernetesConnectionError(KubernetesError):
    """Exception raised when connection to a Kubernetes cluster fails.

    This includes network errors, kubeconfig issues, and unreachable API servers.
    """

    def __init__(
        self,
        message: str = "Failed to connect to Kubernetes cluster",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message=message)
        self.original_error = original_error


class KubernetesAuthError(KubernetesError):
    """Exception raised when authentication or authorization fails (401/403)."""

    def __init__(
        self,
        message: str = "Kubernetes authentication/authorization failed",
        status_code: int | None = 401,
        reason: str | None = None,
    ) -> None:
        super().__init__(message=message, status_code=status_code)
        self.reason = reason


class KubernetesNotFoundError(KubernetesError):
    """Exception raised when a requested Kubernetes resource is not found.

    This is typically a 404 response from the Kubernetes API.
    """

    def __init__(
        self,
        message: str = "Kubernetes resource not found",
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
    ) -> None:
        """Initialize KubernetesNotFoundError.

        Args:
            message: Human-readable error message.
            resource_type: Type of resource (e.g., "Service", "Secret").
            resource_name: Name of the resource.
            namespace: Namespace of the resource.
        """
        if resource_type and resource_name:
            message = f"{resource_type} '{resource_name}' not found"
            if namespace:
                message += f" in namespace '{namespace}'"
        super().__init__(
            message=message,
            status_code=404,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )


class KubernetesValidationError(KubernetesError):
    """Exception raised when a resource specification is invalid.

    Raised for 400/422 API responses and for client-side checks that fail
    before any request is made.
    """

    def __init__(
        self,
        message: str = "Invalid resource specification",
        validation_errors: dict[str, Any] | None = None,
        status_code: int | None = 422,
    ) -> None:
        super().__init__(message=message, status_code=status_code)
        self.validation_errors = validation_errors or {}


class KubernetesConflictError(KubernetesError):
    """Exception raised when a resource conflict occurs.

    This is a 409 response: the resource already exists, it has been modified
    by another client since it was read, or a delete precondition failed.
    """

    def __init__(
        self,
        message: str = "Resource conflict",
        resource_type: str | None = None,
        resource_name: str | None = None,
        namespace: str | None = None,
        reason: str | None = None,
    ) -> None:
        """Initialize KubernetesConflictError.

        Args:
            message: Human-readable error message.
            resource_type: Type of resource.
            resource_name: Name of the resource.
            namespace: Namespace of the resource.
            reason: Kubernetes API reason string (e.g. "AlreadyExists").
        """
        if resource_type and resource_name and reason == "AlreadyExists":
            message = f"{resource_type} '{resource_name}' already exists"
            if namespace:
                message += f" in namespace '{namespace}'"
        super().__init__(
            message=message,
            status_code=409,
            resource_type=resource_type,
            resource_name=resource_name,
            namespace=namespace,
        )
        self.reason = reason


class KubernetesTimeoutError(KubernetesError):
    """Exception raised when a Kubernetes operation exceeds its deadline."""

    def __init__(
        self,
        message: str = "Kubernetes operation timed out",
        timeout_seconds: float | None = None,
    ) -> None:
        if timeout_seconds:
            message = f"{message} (after {timeout_seconds}s)"
        super().__init__(message=message)
        self.timeout_seconds = timeout_seconds


class KubernetesCancelledError(KubernetesError):
    """Exception raised when a request context is cancelled mid-operation."""

    def __init__(self, message: str = "Kubernetes operation cancelled") -> None:
        super().__init__(message=message)


# =============================================================================
# Apply / Sync Errors
# =============================================================================


class MissingControllerRefError(KubernetesValidationError):
    """The desired object carries no controller owner reference.

    Raised before any API call is made.
    """

    def __init__(self, resource_type: str, resource_ref: str) -> None:
        super().__init__(
            message=f'{resource_type} "{resource_ref}" is missing controllerRef',
            status_code=None,
        )
        self.resource_type = resource_type
        self.resource_ref = resource_ref


class OwnershipConflictError(KubernetesError):
    """The existing object is controlled by someone else."""

    def __init__(self, resource_type: str, resource_ref: str) -> None:
        super().__init__(message=f'{resource_type} "{resource_ref}" isn\'t controlled by us')
        self.resource_type = resource_type
        self.resource_ref = resource_ref


class KubernetesUpdateNotFoundError(KubernetesNotFoundError):
    """The object was deleted between the cache read and the update call.

    The next reconcile pass goes through the create path.
    """

    def __init__(
        self,
        resource_type: str,
        resource_ref: str,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message=f'can\'t update {resource_type} "{resource_ref}": {original_error}')
        self.resource_type = resource_type
        self.resource_ref = resource_ref
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class KubernetesAggregateError(KubernetesError):
    """Several independent operations failed.

    Attributes:
        errors: The individual failures, in the order they happened.
    """

    def __init__(self, errors: Sequence[Exception], message: str | None = None) -> None:
        self.errors = list(errors)
        if len(self.errors) == 1:
            detail = str(self.errors[0])
        else:
            detail = "[" + ", ".join(str(e) for e in self.errors) + "]"
        super().__init__(message=f"{message}: {detail}" if message else detail)


class SyncError(KubernetesError):
    """A sync pass failed after possibly making partial progress.

    Attributes:
        progressing_conditions: Conditions recorded before the failure.
    """

    def __init__(
        self,
        message: str,
        progressing_conditions: list[Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        if original_error is not None:
            message = f"{message}: {original_error}"
        super().__init__(message=message)
        self.progressing_conditions = list(progressing_conditions or [])
        self.original_error = original_error
