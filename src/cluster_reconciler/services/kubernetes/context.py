"""Deadline and cancellation for store calls.

Every call the apply engine and the sync orchestrator make against the
cluster store goes through a :class:`RequestContext`. The context is checked
before each call and its remaining time is passed to the kubernetes client
as ``_request_timeout``. Retrying after a cancelled or expired context is the
caller's business.
"""

from __future__ import annotations

import threading
import time
from typing import Any

from cluster_reconciler.integrations.kubernetes.exceptions import (
    KubernetesCancelledError,
    KubernetesTimeoutError,
)


class RequestContext:
    """A cancelable, optionally deadline-bound scope for store calls.

    Child contexts share the parent's cancellation and never outlive its
    deadline.

    Example:
        >>> ctx = RequestContext(timeout=30)
        >>> ctx.check()
        >>> ctx.request_kwargs()  # {"_request_timeout": 29.99...}
    """

    def __init__(self, timeout: float | None = None, *, parent: RequestContext | None = None) -> None:
        self._cancelled = threading.Event()
        self._parent = parent
        self._timeout = timeout
        deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None and parent.deadline is not None:
            deadline = parent.deadline if deadline is None else min(deadline, parent.deadline)
        self._deadline = deadline

    @classmethod
    def background(cls) -> RequestContext:
        """A context that is never cancelled and has no deadline."""
        return cls()

    def with_timeout(self, timeout: float) -> RequestContext:
        """Derive a child context with a tighter deadline."""
        return RequestContext(timeout, parent=self)

    @property
    def deadline(self) -> float | None:
        """Monotonic deadline, or None when unbounded."""
        return self._deadline

    @property
    def cancelled(self) -> bool:
        """True once :meth:`cancel` was called on this context or a parent."""
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancelled.set()

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), or None."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the context is cancelled or past its deadline.

        Raises:
            KubernetesCancelledError: If the context was cancelled.
            KubernetesTimeoutError: If the deadline has passed.
        """
        if self.cancelled:
            raise KubernetesCancelledError()
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise KubernetesTimeoutError(
                message="Request context deadline exceeded",
                timeout_seconds=self._timeout,
            )

    def request_kwargs(self) -> dict[str, Any]:
        """Keyword arguments that bound one kubernetes client call."""
        remaining = self.remaining()
        if remaining is None:
            return {}
        return {"_request_timeout": remaining}
