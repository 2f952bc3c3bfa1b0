"""Unit tests for NeatoMqttService lifecycle and the refresh timer."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from neato_mqtt.exceptions import NucleoError
from neato_mqtt.service import NeatoMqttService
from neato_mqtt.structs import ServiceState


@pytest.fixture
def service(root: str, mock_robot: AsyncMock, mock_publisher: AsyncMock) -> NeatoMqttService:
    return NeatoMqttService(root, mock_robot, mock_publisher, refresh_interval=3600)


class TestServiceLifecycle:
    """Tests for start() and stop()"""

    @pytest.mark.asyncio
    async def test_start_publishes_all_and_runs(self, service: NeatoMqttService, mock_publisher: AsyncMock):
        """Test that start() does a full publish and starts the timer"""
        assert service.state is ServiceState.STOPPED

        await service.start()
        try:
            assert service.state is ServiceState.RUNNING
            assert mock_publisher.publish.await_count == 13
            assert service.cache.is_populated
            assert service._timer_task is not None
            assert not service._timer_task.done()
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self, service: NeatoMqttService):
        """Test that stop() cancels the timer and returns to STOPPED"""
        await service.start()
        timer = service._timer_task
        assert timer is not None

        await service.stop()

        assert service.state is ServiceState.STOPPED
        assert timer.cancelled()
        assert service._timer_task is None

    @pytest.mark.asyncio
    async def test_stop_does_not_refresh(self, service: NeatoMqttService, mock_robot: AsyncMock):
        """Test that no final refresh runs on shutdown"""
        await service.start()
        mock_robot.get_robot_state.reset_mock()

        await service.stop()

        mock_robot.get_robot_state.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_start_returns_to_stopped(self, service: NeatoMqttService, mock_robot: AsyncMock):
        """Test that a failed full publish leaves the service STOPPED and re-raises"""
        mock_robot.get_robot_state = AsyncMock(side_effect=NucleoError("getRobotState", "ko"))

        with pytest.raises(NucleoError):
            await service.start()

        assert service.state is ServiceState.STOPPED
        assert service._timer_task is None

    @pytest.mark.asyncio
    async def test_start_twice_is_a_no_op(self, service: NeatoMqttService, mock_robot: AsyncMock):
        await service.start()
        try:
            await service.start()

            mock_robot.get_robot_state.assert_awaited_once()
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_stop_when_stopped(self, service: NeatoMqttService):
        await service.stop()

        assert service.state is ServiceState.STOPPED


class TestRefreshTimer:
    """Tests for the periodic refresh"""

    @pytest.mark.asyncio
    async def test_timer_ticks_refresh(self, root: str, mock_robot: AsyncMock, mock_publisher: AsyncMock):
        """Test that the timer refreshes once per interval"""
        service = NeatoMqttService(root, mock_robot, mock_publisher, refresh_interval=0.01)

        await service.start()
        await asyncio.sleep(0.1)
        await service.stop()

        # one fetch for the full publish plus at least two ticks
        assert mock_robot.get_robot_state.await_count >= 3

    @pytest.mark.asyncio
    async def test_tick_error_is_logged_and_timer_keeps_running(
        self,
        root: str,
        mock_robot: AsyncMock,
        mock_publisher: AsyncMock,
    ):
        """Test that a failed refresh does not stop the timer"""
        service = NeatoMqttService(root, mock_robot, mock_publisher, refresh_interval=0.01)
        await service.start()
        mock_robot.get_robot_state = AsyncMock(side_effect=NucleoError("getRobotState", "ko"))

        await asyncio.sleep(0.05)

        assert service._timer_task is not None
        assert not service._timer_task.done()
        assert mock_robot.get_robot_state.await_count >= 2
        await service.stop()

    @pytest.mark.asyncio
    async def test_timed_refresh_runs_with_correlation_id(self, service: NeatoMqttService):
        """Test that each scheduled refresh gets its own correlation ID"""
        seen: list[str | None] = []

        async def _capture() -> dict[str, str]:
            from neato_mqtt.correlation import get_correlation_id

            seen.append(get_correlation_id())
            return {}

        with patch.object(service, "refresh", side_effect=_capture):
            await service._timed_refresh()
            await service._timed_refresh()

        assert len(seen) == 2
        assert all(seen)
        assert seen[0] != seen[1]


class TestConnectionHook:
    """Tests for on_mqtt_connected"""

    @pytest.mark.asyncio
    async def test_first_connection_starts_service(self, service: NeatoMqttService):
        await service.on_mqtt_connected()
        try:
            assert service.state is ServiceState.RUNNING
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_reconnect_republishes_everything(self, service: NeatoMqttService, mock_publisher: AsyncMock):
        """Test that a reconnect re-publishes every topic, changed or not"""
        await service.on_mqtt_connected()
        mock_publisher.publish.reset_mock()

        await service.on_mqtt_connected()
        try:
            assert mock_publisher.publish.await_count == 13
            assert service.state is ServiceState.RUNNING
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_reconnect_publish_failure_is_logged(self, service: NeatoMqttService, mock_robot: AsyncMock):
        await service.on_mqtt_connected()
        mock_robot.get_robot_state = AsyncMock(side_effect=NucleoError("getRobotState", "ko"))

        await service.on_mqtt_connected()
        try:
            assert service.state is ServiceState.RUNNING
        finally:
            await service.stop()

    @pytest.mark.asyncio
    async def test_handle_message_delegates_to_router(self, service: NeatoMqttService, mock_robot: AsyncMock):
        await service.start()
        try:
            await service.handle_message("/dock/set", "")

            mock_robot.send_to_base.assert_awaited_once()
        finally:
            await service.stop()
