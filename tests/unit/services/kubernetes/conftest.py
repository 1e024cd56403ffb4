"""Shared fixtures for Kubernetes service tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from cluster_reconciler.integrations.kubernetes.client import KubernetesClient


@pytest.fixture
def mock_k8s_client() -> MagicMock:
    """Create a mock Kubernetes client.

    ``core_v1`` and ``custom_objects`` are auto-created sub-mocks. API errors
    go through the real translation so tests see the typed exceptions.
    """
    mock_client = MagicMock()
    mock_client.default_namespace = "default"
    mock_client.translate_api_exception.side_effect = KubernetesClient.translate_api_exception
    mock_client.make_retry_decorator.return_value = lambda func: func
    return mock_client
