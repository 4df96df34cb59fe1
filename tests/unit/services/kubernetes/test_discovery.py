"""Unit tests for ResourceResolver."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
from linkerd_adapter.integrations.kubernetes.config import KubernetesConnectionConfig
from linkerd_adapter.integrations.kubernetes.exceptions import (
    DiscoveryError,
    KubernetesConnectionError,
)
from linkerd_adapter.integrations.kubernetes.models.manifest import GroupVersionKind
from linkerd_adapter.services.kubernetes.discovery import (
    SCOPE_NAMESPACE,
    SCOPE_ROOT,
    ResourceResolver,
)

DEPLOYMENT = GroupVersionKind("apps", "v1", "Deployment")


@pytest.fixture
def discovered(mock_k8s_client: MagicMock) -> MagicMock:
    """Dynamic client returned by the mocked Kubernetes client."""
    dynamic = MagicMock()
    dynamic.resources.get.return_value = MagicMock(namespaced=True)
    dynamic.resources.get.return_value.name = "deployments"
    mock_k8s_client.dynamic_client.return_value = dynamic
    return dynamic


@pytest.mark.unit
@pytest.mark.kubernetes
class TestResolve:
    """Tests for ResourceResolver.resolve."""

    def test_resolves_namespaced_resource(
        self, mock_k8s_client: MagicMock, discovered: MagicMock
    ) -> None:
        mapping = ResourceResolver(mock_k8s_client).resolve(DEPLOYMENT)

        discovered.resources.get.assert_called_once_with(api_version="apps/v1", kind="Deployment")
        assert mapping.resource == "deployments"
        assert mapping.namespaced is True
        assert mapping.scope == SCOPE_NAMESPACE
        assert mapping.client is discovered

    def test_cluster_scoped_resource(
        self, mock_k8s_client: MagicMock, discovered: MagicMock
    ) -> None:
        discovered.resources.get.return_value.namespaced = False
        mapping = ResourceResolver(mock_k8s_client).resolve(GroupVersionKind("", "v1", "Namespace"))
        assert mapping.scope == SCOPE_ROOT

    def test_every_lookup_refreshes_discovery(
        self, mock_k8s_client: MagicMock, discovered: MagicMock
    ) -> None:
        resolver = ResourceResolver(mock_k8s_client)
        resolver.resolve(DEPLOYMENT)
        resolver.resolve(DEPLOYMENT)

        assert mock_k8s_client.dynamic_client.call_count == 2
        assert discovered.resources.invalidate_cache.call_count == 2

    def test_unserved_kind(self, mock_k8s_client: MagicMock, discovered: MagicMock) -> None:
        from kubernetes.dynamic.exceptions import ResourceNotFoundError

        discovered.resources.get.side_effect = ResourceNotFoundError("No matches found")

        with pytest.raises(DiscoveryError) as exc_info:
            ResourceResolver(mock_k8s_client).resolve(
                GroupVersionKind("policy.linkerd.io", "v1beta1", "Server")
            )

        assert exc_info.value.api_version == "policy.linkerd.io/v1beta1"
        assert exc_info.value.kind == "Server"

    def test_ambiguous_kind(self, mock_k8s_client: MagicMock, discovered: MagicMock) -> None:
        from kubernetes.dynamic.exceptions import ResourceNotUniqueError

        discovered.resources.get.side_effect = ResourceNotUniqueError("multiple matches")

        with pytest.raises(DiscoveryError):
            ResourceResolver(mock_k8s_client).resolve(DEPLOYMENT)

    def test_connection_failure_becomes_discovery_error(
        self, mock_k8s_client: MagicMock, discovered: MagicMock
    ) -> None:
        from urllib3.exceptions import NewConnectionError

        discovered.resources.get.side_effect = NewConnectionError(None, "refused")  # type: ignore[arg-type]

        with pytest.raises(DiscoveryError) as exc_info:
            ResourceResolver(mock_k8s_client).resolve(DEPLOYMENT)

        assert isinstance(exc_info.value.original_error, KubernetesConnectionError)

    def test_uses_client_retry_decorator(
        self, mock_k8s_client: MagicMock, discovered: MagicMock
    ) -> None:
        ResourceResolver(mock_k8s_client).resolve(DEPLOYMENT)
        mock_k8s_client.make_retry_decorator.assert_called_once()


@pytest.mark.unit
@pytest.mark.kubernetes
class TestResolveRetries:
    """Discovery retries through a real client's retry policy."""

    @patch("kubernetes.config")
    def test_refused_connection_is_retried(self, mock_config: MagicMock) -> None:
        from urllib3.exceptions import NewConnectionError

        client = KubernetesClient(KubernetesConnectionConfig(retry_attempts=3))
        dynamic = MagicMock()
        dynamic.resources.get.side_effect = NewConnectionError(None, "connection refused")  # type: ignore[arg-type]

        with (
            patch("kubernetes.dynamic.DynamicClient", return_value=dynamic),
            patch("tenacity.nap.time.sleep"),
            pytest.raises(DiscoveryError) as exc_info,
        ):
            ResourceResolver(client).resolve(DEPLOYMENT)

        assert dynamic.resources.get.call_count == 3
        assert isinstance(exc_info.value.original_error, KubernetesConnectionError)

    @patch("kubernetes.config")
    def test_recovers_after_transient_failure(self, mock_config: MagicMock) -> None:
        from urllib3.exceptions import NewConnectionError

        client = KubernetesClient(KubernetesConnectionConfig(retry_attempts=3))
        api = MagicMock(namespaced=True)
        api.name = "deployments"
        dynamic = MagicMock()
        dynamic.resources.get.side_effect = [
            NewConnectionError(None, "connection refused"),  # type: ignore[arg-type]
            api,
        ]

        with (
            patch("kubernetes.dynamic.DynamicClient", return_value=dynamic),
            patch("tenacity.nap.time.sleep"),
        ):
            mapping = ResourceResolver(client).resolve(DEPLOYMENT)

        assert mapping.resource == "deployments"
        assert dynamic.resources.get.call_count == 2
