"""Unit tests for Kubernetes client."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client import ApiException
from urllib3.exceptions import NewConnectionError, ReadTimeoutError

from cluster_reconciler.integrations.kubernetes.client import KubernetesClient
from cluster_reconciler.integrations.kubernetes.config import (
    ClusterConfig,
    OperatorConfig,
    ReconcileDefaultsConfig,
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


def _api_exception(status: int, reason: str, body: dict[str, str] | None = None) -> ApiException:
    e = ApiException(status=status, reason=reason)
    if body is not None:
        e.body = json.dumps(body)
    return e


@pytest.fixture
def client() -> KubernetesClient:
    """A client whose configuration loading is stubbed out."""
    with patch("kubernetes.config"):
        return KubernetesClient(OperatorConfig())


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKubernetesClientInitialization:
    """Test KubernetesClient initialization."""

    @patch("kubernetes.config")
    def test_init_with_default_config(self, mock_config: MagicMock) -> None:
        """Default config loads the kubeconfig with no explicit file or context."""
        operator_config = OperatorConfig()
        client = KubernetesClient(operator_config)

        assert client._config == operator_config
        assert client._retries == 3
        mock_config.load_kube_config.assert_called_once_with(config_file=None, context=None)

    @patch("kubernetes.config")
    def test_init_with_cluster_config(self, mock_config: MagicMock) -> None:
        """Explicit kubeconfig and context are passed through."""
        operator_config = OperatorConfig(
            cluster=ClusterConfig(context="test-context", kubeconfig="/path/to/config"),
        )
        client = KubernetesClient(operator_config)

        mock_config.load_kube_config.assert_called_once_with(
            config_file="/path/to/config",
            context="test-context",
        )
        assert client.get_current_context() == "test-context"

    @patch("kubernetes.config")
    def test_init_in_cluster(self, mock_config: MagicMock) -> None:
        """in_cluster=True skips the kubeconfig entirely."""
        client = KubernetesClient(OperatorConfig(cluster=ClusterConfig(in_cluster=True)))

        mock_config.load_incluster_config.assert_called_once()
        mock_config.load_kube_config.assert_not_called()
        assert client.get_current_context() == "in-cluster"

    @patch("kubernetes.config")
    def test_init_fallback_to_incluster(self, mock_config: MagicMock) -> None:
        """A missing kubeconfig falls back to the in-cluster service account."""
        from kubernetes.config import ConfigException

        mock_config.load_kube_config.side_effect = ConfigException("Not found")

        client = KubernetesClient(OperatorConfig())

        mock_config.load_incluster_config.assert_called_once()
        assert client.get_current_context() == "in-cluster"

    @patch("kubernetes.config")
    def test_init_connection_error(self, mock_config: MagicMock) -> None:
        """No usable configuration raises KubernetesConnectionError."""
        from kubernetes.config import ConfigException

        mock_config.load_kube_config.side_effect = ConfigException("No config")
        mock_config.load_incluster_config.side_effect = ConfigException("Not in cluster")

        with pytest.raises(KubernetesConnectionError) as exc_info:
            KubernetesClient(OperatorConfig())

        assert "Cannot load Kubernetes configuration" in str(exc_info.value)
        assert isinstance(exc_info.value.original_error, ConfigException)


@pytest.mark.unit
@pytest.mark.kubernetes
class TestKubernetesClientAPIProperties:
    """Test KubernetesClient lazy API properties."""

    def test_core_v1_lazy_loading(self, client: KubernetesClient) -> None:
        """CoreV1Api is created on first access and cached."""
        assert client._core_v1 is None

        with patch("kubernetes.client.CoreV1Api") as mock_api:
            first = client.core_v1
            second = client.core_v1

        mock_api.assert_called_once()
        assert first is second

    def test_custom_objects_lazy_loading(self, client: KubernetesClient) -> None:
        """CustomObjectsApi shares the client's ApiClient."""
        with (
            patch("kubernetes.client.ApiClient") as mock_api_client,
            patch("kubernetes.client.CustomObjectsApi") as mock_api,
        ):
            _ = client.custom_objects

        mock_api.assert_called_once_with(mock_api_client.return_value)

    def test_close_releases_api_client(self, client: KubernetesClient) -> None:
        """close() closes the ApiClient and drops cached API groups."""
        with patch("kubernetes.client.ApiClient") as mock_api_client, patch("kubernetes.client.CoreV1Api"):
            _ = client.core_v1
            client.close()

        mock_api_client.return_value.close.assert_called_once()
        assert client._core_v1 is None
        assert client._api_client is None

    def test_exposes_only_used_api_groups(self, client: KubernetesClient) -> None:
        """Only the API groups the reconciler calls are exposed."""
        assert not hasattr(client, "version_api")
        assert not hasattr(client, "_version_api")

    def test_context_manager_closes(self, client: KubernetesClient) -> None:
        """Leaving the with-block closes the client."""
        with patch.object(client, "close") as mock_close:
            with client as entered:
                assert entered is client
        mock_close.assert_called_once()

    def test_properties_from_config(self) -> None:
        """Namespace and timeout come from the configuration."""
        with patch("kubernetes.config"):
            client = KubernetesClient(
                OperatorConfig(
                    cluster=ClusterConfig(namespace="scylla"),
                    defaults=ReconcileDefaultsConfig(request_timeout=5),
                )
            )
        assert client.default_namespace == "scylla"
        assert client.request_timeout == 5


@pytest.mark.unit
@pytest.mark.kubernetes
class TestTranslateApiException:
    """Test ApiException translation."""

    def test_kubernetes_error_passes_through(self) -> None:
        """Already translated errors are returned unchanged."""
        error = KubernetesNotFoundError()
        assert KubernetesClient.translate_api_exception(error) is error

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors(self, status: int) -> None:
        """401 and 403 become KubernetesAuthError."""
        result = KubernetesClient.translate_api_exception(_api_exception(status, "Forbidden"))
        assert isinstance(result, KubernetesAuthError)
        assert result.status_code == status

    def test_not_found(self) -> None:
        """404 becomes KubernetesNotFoundError naming the resource."""
        result = KubernetesClient.translate_api_exception(
            _api_exception(404, "Not Found"),
            resource_type="Service",
            resource_name="basic-client",
            namespace="scylla",
        )
        assert isinstance(result, KubernetesNotFoundError)
        assert result.message == "Service 'basic-client' not found in namespace 'scylla'"

    def test_already_exists_conflict(self) -> None:
        """409 AlreadyExists keeps the machine-readable reason."""
        result = KubernetesClient.translate_api_exception(
            _api_exception(409, "Conflict", {"kind": "Status", "reason": "AlreadyExists"}),
            resource_type="Secret",
            resource_name="test",
            namespace="default",
        )
        assert isinstance(result, KubernetesConflictError)
        assert result.reason == "AlreadyExists"
        assert result.message == "Secret 'test' already exists in namespace 'default'"

    def test_version_conflict(self) -> None:
        """409 Conflict (stale resourceVersion) keeps the API reason text."""
        result = KubernetesClient.translate_api_exception(
            _api_exception(409, "Conflict", {"reason": "Conflict"}),
            resource_type="Secret",
            resource_name="test",
        )
        assert isinstance(result, KubernetesConflictError)
        assert result.reason == "Conflict"
        assert result.message == "Conflict"

    def test_conflict_with_unparseable_body(self) -> None:
        """A body that is not JSON yields no reason."""
        e = ApiException(status=409, reason="Conflict")
        e.body = "<html>"
        result = KubernetesClient.translate_api_exception(e)
        assert isinstance(result, KubernetesConflictError)
        assert result.reason is None

    @pytest.mark.parametrize("status", [400, 422])
    def test_validation_errors(self, status: int) -> None:
        """400 and 422 become KubernetesValidationError."""
        result = KubernetesClient.translate_api_exception(_api_exception(status, "Invalid"))
        assert isinstance(result, KubernetesValidationError)
        assert result.status_code == status

    def test_gateway_timeout(self) -> None:
        """504 becomes KubernetesTimeoutError."""
        result = KubernetesClient.translate_api_exception(_api_exception(504, "Gateway Timeout"))
        assert isinstance(result, KubernetesTimeoutError)

    def test_read_timeout(self) -> None:
        """urllib3 read timeouts become KubernetesTimeoutError."""
        result = KubernetesClient.translate_api_exception(ReadTimeoutError(None, "/api", "timed out"))
        assert isinstance(result, KubernetesTimeoutError)

    def test_connection_failure(self) -> None:
        """Other urllib3 errors become KubernetesConnectionError."""
        error = NewConnectionError(None, "connection refused")
        result = KubernetesClient.translate_api_exception(error)
        assert isinstance(result, KubernetesConnectionError)
        assert result.original_error is error

    def test_other_status(self) -> None:
        """Unmapped statuses become a generic KubernetesError."""
        result = KubernetesClient.translate_api_exception(_api_exception(500, "Internal Error"))
        assert type(result) is KubernetesError
        assert result.status_code == 500

    def test_non_api_exception(self) -> None:
        """Arbitrary exceptions are wrapped with the resource context."""
        result = KubernetesClient.translate_api_exception(RuntimeError("boom"), resource_type="Pod")
        assert type(result) is KubernetesError
        assert result.message == "boom"
        assert result.resource_type == "Pod"


@pytest.mark.unit
@pytest.mark.kubernetes
class TestRetryDecorator:
    """Test the connection retry decorator."""

    def test_retries_connection_errors(self, client: KubernetesClient) -> None:
        """Connection errors are retried up to retry_attempts."""
        calls = MagicMock(side_effect=[KubernetesConnectionError(), KubernetesConnectionError(), "ok"])

        with patch("tenacity.nap.time.sleep"):
            result = client.make_retry_decorator()(calls)()

        assert result == "ok"
        assert calls.call_count == 3

    def test_gives_up_after_attempts(self, client: KubernetesClient) -> None:
        """The last connection error is re-raised once attempts run out."""
        calls = MagicMock(side_effect=KubernetesConnectionError())

        with patch("tenacity.nap.time.sleep"), pytest.raises(KubernetesConnectionError):
            client.make_retry_decorator()(calls)()

        assert calls.call_count == 3

    def test_does_not_retry_conflicts(self, client: KubernetesClient) -> None:
        """Conflicts are left to the next reconcile pass."""
        calls = MagicMock(side_effect=KubernetesConflictError())

        with pytest.raises(KubernetesConflictError):
            client.make_retry_decorator()(calls)()

        assert calls.call_count == 1
