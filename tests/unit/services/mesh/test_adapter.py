"""Unit tests for LinkerdAdapter."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from linkerd_adapter.core.config import AdapterConfig
from linkerd_adapter.integrations.kubernetes.exceptions import KubernetesConnectionError
from linkerd_adapter.integrations.kubernetes.linkerd_client import LinkerdError
from linkerd_adapter.services.mesh.adapter import LinkerdAdapter
from linkerd_adapter.services.mesh.events import Event, EventType
from linkerd_adapter.services.mesh.exceptions import (
    AdapterNotInitializedError,
    OperationValidationError,
)


@pytest.fixture
def config(tmp_path: Path) -> AdapterConfig:
    return AdapterConfig(
        event_queue_size=5,
        event_poll_interval=0.01,
        max_concurrent_operations=2,
        manifest_cache_dir=tmp_path / "cache",
    )


@pytest.mark.unit
@pytest.mark.mesh
class TestBeforeCreateInstance:
    """Session methods fail until a mesh client exists."""

    def test_events(self) -> None:
        with pytest.raises(AdapterNotInitializedError, match="mesh client has not been created"):
            _ = LinkerdAdapter().events

    @pytest.mark.asyncio
    async def test_apply_operation(self) -> None:
        with pytest.raises(AdapterNotInitializedError):
            await LinkerdAdapter().apply_operation("op-1", "linkerd_install", "linkerd")

    @pytest.mark.asyncio
    async def test_stream_events(self) -> None:
        with pytest.raises(AdapterNotInitializedError):
            await LinkerdAdapter().stream_events(lambda event: None)

    def test_static_queries(self) -> None:
        adapter = LinkerdAdapter()

        assert adapter.mesh_name() == "Linkerd"
        assert {op["key"] for op in adapter.supported_operations()} >= {
            "linkerd_install",
            "custom",
        }


@pytest.mark.unit
@pytest.mark.mesh
class TestSession:
    """Tests for a created session."""

    @patch("kubernetes.config")
    def test_create_instance(self, mock_config: MagicMock, config: AdapterConfig) -> None:
        adapter = LinkerdAdapter(config)
        adapter.create_instance()

        mock_config.new_client_from_config.assert_called_once_with(context=None)
        assert adapter.events.pending == 0
        assert adapter.orchestrator.in_flight == []

    @patch("kubernetes.config")
    def test_create_instance_failure(self, mock_config: MagicMock) -> None:
        from kubernetes.config import ConfigException

        mock_config.new_client_from_config_dict.side_effect = ConfigException("bad context")

        adapter = LinkerdAdapter()
        with pytest.raises(KubernetesConnectionError):
            adapter.create_instance(b"apiVersion: v1\nkind: Config\n", "missing")

        with pytest.raises(AdapterNotInitializedError):
            _ = adapter.orchestrator

    @pytest.mark.asyncio
    @patch("kubernetes.config")
    async def test_validation_error_propagates(
        self, mock_config: MagicMock, config: AdapterConfig
    ) -> None:
        adapter = LinkerdAdapter(config)
        adapter.create_instance()

        with pytest.raises(OperationValidationError):
            await adapter.apply_operation("op-1", "custom", "demo", custom_body="")

        await adapter.close()

    @pytest.mark.asyncio
    @patch("kubernetes.config")
    async def test_stream_events(self, mock_config: MagicMock, config: AdapterConfig) -> None:
        adapter = LinkerdAdapter(config)
        adapter.create_instance()
        event = Event(operation_id="op-1", event_type=EventType.INFO, summary="done")
        await adapter.events.publish(event)

        received: list[Event] = []
        stop = asyncio.Event()

        def send(e: Event) -> None:
            received.append(e)
            stop.set()

        await asyncio.wait_for(adapter.stream_events(send, stop), timeout=1)

        assert received == [event]
        await adapter.close()

    @pytest.mark.asyncio
    @patch("kubernetes.config")
    async def test_close_resets_session(
        self, mock_config: MagicMock, config: AdapterConfig
    ) -> None:
        adapter = LinkerdAdapter(config)
        adapter.create_instance()
        api_client = mock_config.new_client_from_config.return_value

        await adapter.close()

        api_client.close.assert_called_once()
        with pytest.raises(AdapterNotInitializedError):
            _ = adapter.events


@pytest.mark.unit
@pytest.mark.mesh
class TestRecreateInstance:
    """Replacing the mesh client of a live session."""

    @patch("kubernetes.config")
    def test_idle_client_is_closed(self, mock_config: MagicMock, config: AdapterConfig) -> None:
        first, second = MagicMock(), MagicMock()
        mock_config.new_client_from_config.side_effect = [first, second]
        adapter = LinkerdAdapter(config)

        adapter.create_instance()
        events = adapter.events
        adapter.create_instance()

        first.close.assert_called_once()
        second.close.assert_not_called()
        assert adapter.events is events

    @patch("kubernetes.config")
    def test_failed_recreate_keeps_session(
        self, mock_config: MagicMock, config: AdapterConfig
    ) -> None:
        from kubernetes.config import ConfigException

        adapter = LinkerdAdapter(config)
        adapter.create_instance()
        orchestrator = adapter.orchestrator
        mock_config.new_client_from_config_dict.side_effect = ConfigException("bad context")

        with pytest.raises(KubernetesConnectionError):
            adapter.create_instance(b"apiVersion: v1\nkind: Config\n", "missing")

        assert adapter.orchestrator is orchestrator
        mock_config.new_client_from_config.return_value.close.assert_not_called()

    @pytest.mark.asyncio
    @patch("kubernetes.config")
    async def test_running_operation_reports_on_kept_stream(
        self, mock_config: MagicMock, config: AdapterConfig
    ) -> None:
        first, second = MagicMock(), MagicMock()
        mock_config.new_client_from_config.side_effect = [first, second]
        release = threading.Event()
        linkerd = MagicMock()
        linkerd.check_pre.side_effect = lambda *args: release.wait(timeout=5)
        linkerd.install_manifest.side_effect = LinkerdError(message="install failed")
        adapter = LinkerdAdapter(config)

        with patch("linkerd_adapter.services.mesh.adapter.LinkerdClient", return_value=linkerd):
            adapter.create_instance()
            await adapter.apply_operation("op-1", "linkerd_install", "linkerd")
            adapter.create_instance()

        first.close.assert_not_called()
        release.set()

        received: list[Event] = []
        stop = asyncio.Event()

        def send(e: Event) -> None:
            received.append(e)
            stop.set()

        await asyncio.wait_for(adapter.stream_events(send, stop), timeout=2)
        await asyncio.gather(*adapter._reapers)

        assert received[0].operation_id == "op-1"
        assert received[0].event_type is EventType.ERROR
        assert "install failed" in received[0].details
        first.close.assert_called_once()
        second.close.assert_not_called()

        await adapter.close()
        second.close.assert_called_once()

    @pytest.mark.asyncio
    @patch("kubernetes.config")
    async def test_close_cancels_retired_operations(
        self, mock_config: MagicMock, config: AdapterConfig
    ) -> None:
        first, second = MagicMock(), MagicMock()
        mock_config.new_client_from_config.side_effect = [first, second]
        release = threading.Event()
        linkerd = MagicMock()
        linkerd.check_pre.side_effect = lambda *args: release.wait(timeout=5)
        linkerd.install_manifest.return_value = ""
        adapter = LinkerdAdapter(config)

        with patch("linkerd_adapter.services.mesh.adapter.LinkerdClient", return_value=linkerd):
            adapter.create_instance()
            retired = adapter.orchestrator
            await adapter.apply_operation("op-1", "linkerd_install", "linkerd")
            adapter.create_instance()

        close = asyncio.create_task(adapter.close())
        await asyncio.sleep(0.05)
        release.set()
        await asyncio.wait_for(close, timeout=2)

        assert retired.in_flight == []
        first.close.assert_called()
        second.close.assert_called_once()
