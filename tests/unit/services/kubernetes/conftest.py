"""Shared fixtures for Kubernetes service tests."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from linkerd_adapter.integrations.kubernetes.client import KubernetesClient
from linkerd_adapter.integrations.kubernetes.models.manifest import GroupVersionKind
from linkerd_adapter.services.kubernetes.discovery import ResourceMapping, ResourceResolver
from linkerd_adapter.services.kubernetes.resource_manager import ResourceManager

NAMESPACED_KINDS = frozenset(
    {
        "ConfigMap",
        "CronJob",
        "Deployment",
        "Role",
        "RoleBinding",
        "Secret",
        "Service",
        "ServiceAccount",
    }
)


@pytest.fixture
def mock_k8s_client() -> MagicMock:
    """Create a mock Kubernetes client.

    Retries are disabled and error translation is the real one, so managers
    see the same exception types they would against a live cluster.
    """
    mock_client = MagicMock()
    mock_client.timeout = 30
    mock_client.context_name = ""
    mock_client.make_retry_decorator.return_value = lambda func: func
    mock_client.translate_api_exception.side_effect = KubernetesClient.translate_api_exception
    return mock_client


@pytest.fixture
def dynamic_client() -> MagicMock:
    """The dynamic client every resolved mapping points at."""
    return MagicMock()


def make_mapping(gvk: GroupVersionKind, dynamic_client: MagicMock) -> ResourceMapping:
    return ResourceMapping(
        gvk=gvk,
        resource=f"{gvk.kind.lower()}s",
        namespaced=gvk.kind in NAMESPACED_KINDS,
        api=MagicMock(name=gvk.kind),
        client=dynamic_client,
    )


@pytest.fixture
def resolver(dynamic_client: MagicMock) -> MagicMock:
    """A resolver that knows the built-in kinds."""
    mock_resolver = MagicMock(spec=ResourceResolver)
    mock_resolver.resolve.side_effect = lambda gvk: make_mapping(gvk, dynamic_client)
    return mock_resolver


@pytest.fixture
def resource_manager(mock_k8s_client: MagicMock, resolver: MagicMock) -> ResourceManager:
    """Create a ResourceManager with a mocked client and resolver."""
    return ResourceManager(mock_k8s_client, resolver=resolver)

