"""Unit tests for MQTT command routing."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
from _pytest.logging import LogCaptureFixture

from neato_mqtt.exceptions import CommandDecodeError, NucleoError, StateCacheError
from neato_mqtt.mqtt.command_routing import CommandRouter
from neato_mqtt.mqtt.state_updates import StateCache
from neato_mqtt.mqtt.topics import build_topic_map
from neato_mqtt.structs import (
    CleaningCategory,
    CleaningFrequency,
    CleaningMode,
    NavigationMode,
    RobotState,
    StartCleaningParameters,
)


@pytest.fixture
def cache(root: str, robot_state: RobotState) -> StateCache:
    """State cache as left by the startup publish."""
    cache = StateCache()
    cache.replace(build_topic_map(root, robot_state))
    return cache


@pytest.fixture
def refresh() -> AsyncMock:
    return AsyncMock(return_value={})


@pytest.fixture
def router(root: str, mock_robot: AsyncMock, cache: StateCache, refresh: AsyncMock) -> CommandRouter:
    return CommandRouter(root, mock_robot, cache, refresh)


class TestSimpleCommands:
    """Tests for commands that ignore their payload"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("suffix", "method"),
        [
            ("/dock/set", "send_to_base"),
            ("/findMe/set", "find_me"),
            ("/stop/set", "stop_cleaning"),
            ("/pause/set", "pause_cleaning"),
            ("/resume/set", "resume_cleaning"),
            ("/startPersistentMapExploration/set", "start_persistent_map_exploration"),
            ("/dismissCurrentAlert/set", "dismiss_current_alert"),
        ],
    )
    async def test_dispatch_then_refresh(
        self,
        router: CommandRouter,
        mock_robot: AsyncMock,
        refresh: AsyncMock,
        suffix: str,
        method: str,
    ):
        """Test that each suffix calls its robot operation once, then refreshes"""
        await router.route(suffix, "anything")

        getattr(mock_robot, method).assert_awaited_once_with()
        refresh.assert_awaited_once()

    def test_topic_suffixes(self, router: CommandRouter):
        """Test the full set of handled command suffixes"""
        assert set(router.topic_suffixes) == {
            "/dock/set",
            "/findMe/set",
            "/start/set",
            "/stop/set",
            "/pause/set",
            "/resume/set",
            "/startPersistentMapExploration/set",
            "/enableSchedule/set",
            "/dismissCurrentAlert/set",
        }


class TestEnableSchedule:
    """Tests for /enableSchedule/set"""

    @pytest.mark.asyncio
    async def test_true_enables(self, router: CommandRouter, mock_robot: AsyncMock, refresh: AsyncMock):
        """Test that "true" enables the schedule"""
        await router.route("/enableSchedule/set", "true")

        mock_robot.enable_schedule.assert_awaited_once()
        mock_robot.disable_schedule.assert_not_awaited()
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", ["false", "True", "1", ""])
    async def test_anything_else_disables(self, router: CommandRouter, mock_robot: AsyncMock, payload: str):
        """Test that only the exact string "true" enables"""
        await router.route("/enableSchedule/set", payload)

        mock_robot.disable_schedule.assert_awaited_once()
        mock_robot.enable_schedule.assert_not_awaited()


class TestStartCleaning:
    """Tests for /start/set"""

    @pytest.mark.asyncio
    async def test_empty_payload_uses_cached_settings(
        self,
        router: CommandRouter,
        mock_robot: AsyncMock,
        refresh: AsyncMock,
    ):
        """Test start from the last published category, mode and navigation mode"""
        await router.route("/start/set", "")

        mock_robot.start_cleaning.assert_awaited_once_with(
            StartCleaningParameters(
                category=CleaningCategory.HOUSE,
                mode=CleaningMode.ECO,
                modifier=CleaningFrequency.NORMAL,
                navigation_mode=NavigationMode.NORMAL,
            ),
        )
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_plain_text_payload_uses_cached_settings(self, router: CommandRouter, mock_robot: AsyncMock):
        """Test that a payload without "{" is not decoded"""
        await router.route("/start/set", "go")

        params: StartCleaningParameters = mock_robot.start_cleaning.await_args.args[0]
        assert params.category is CleaningCategory.HOUSE
        assert params.mode is CleaningMode.ECO

    @pytest.mark.asyncio
    async def test_json_payload(self, router: CommandRouter, mock_robot: AsyncMock):
        """Test start with explicit parameters by name"""
        payload = json.dumps({"category": "Map", "mode": "Turbo", "modifier": "Double", "navigationMode": "Deep"})

        await router.route("/start/set", payload)

        mock_robot.start_cleaning.assert_awaited_once_with(
            StartCleaningParameters(
                category=CleaningCategory.MAP,
                mode=CleaningMode.TURBO,
                modifier=CleaningFrequency.DOUBLE,
                navigation_mode=NavigationMode.DEEP,
            ),
        )

    @pytest.mark.asyncio
    async def test_json_payload_with_codes_and_any_key_case(self, router: CommandRouter, mock_robot: AsyncMock):
        """Test numeric codes and PascalCase keys, with defaults for the rest"""
        await router.route("/start/set", '{"Category": 4, "Mode": 1}')

        params: StartCleaningParameters = mock_robot.start_cleaning.await_args.args[0]
        assert params.category is CleaningCategory.MAP
        assert params.mode is CleaningMode.ECO
        assert params.modifier is CleaningFrequency.NORMAL
        assert params.navigation_mode is NavigationMode.NORMAL

    @pytest.mark.asyncio
    async def test_malformed_payload(self, router: CommandRouter, mock_robot: AsyncMock, refresh: AsyncMock):
        """Test that a malformed payload raises, calls no robot operation, and still refreshes"""
        with pytest.raises(CommandDecodeError) as exc_info:
            await router.route("/start/set", "{")

        assert exc_info.value.topic_suffix == "/start/set"
        assert exc_info.value.payload == "{"
        mock_robot.start_cleaning.assert_not_awaited()
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_json_payload_missing_required_field(self, router: CommandRouter, mock_robot: AsyncMock):
        """Test that category and mode are required"""
        with pytest.raises(CommandDecodeError):
            await router.route("/start/set", '{"category": "House"}')

        mock_robot.start_cleaning.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_cache_raises(self, root: str, mock_robot: AsyncMock, refresh: AsyncMock):
        """Test that a start before the first publish raises instead of defaulting"""
        router = CommandRouter(root, mock_robot, StateCache(), refresh)

        with pytest.raises(StateCacheError):
            await router.route("/start/set", "")

        mock_robot.start_cleaning.assert_not_awaited()
        refresh.assert_awaited_once()


class TestRoute:
    """Tests for unknown suffixes and failures"""

    @pytest.mark.asyncio
    async def test_unknown_suffix_refreshes_without_robot_call(
        self,
        router: CommandRouter,
        mock_robot: AsyncMock,
        refresh: AsyncMock,
    ):
        """Test that an unrecognized suffix is a no-op apart from the refresh"""
        await router.route("/selfDestruct/set", "now")

        assert mock_robot.method_calls == []
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_robot_error_propagates_after_refresh(
        self,
        router: CommandRouter,
        mock_robot: AsyncMock,
        refresh: AsyncMock,
    ):
        """Test that a failed robot call is re-raised once the refresh has run"""
        mock_robot.send_to_base = AsyncMock(side_effect=NucleoError("sendToBase", "not_on_charge_base"))

        with pytest.raises(NucleoError):
            await router.route("/dock/set", "")

        refresh.assert_awaited_once()


class TestHandleMessage:
    """Tests for CommandRouter.handle_message"""

    @pytest.mark.asyncio
    async def test_routes_command(self, router: CommandRouter, mock_robot: AsyncMock, refresh: AsyncMock):
        """Test that a message is routed by its topic suffix"""
        await router.handle_message("/findMe/set", "")

        mock_robot.find_me.assert_awaited_once()
        refresh.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_decode_error_is_logged_not_raised(
        self,
        router: CommandRouter,
        caplog: LogCaptureFixture,
    ):
        """Test that a malformed payload is logged and swallowed"""
        await router.handle_message("/start/set", "{")

        assert any("bad /start/set payload" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_robot_error_is_logged_not_raised(
        self,
        router: CommandRouter,
        mock_robot: AsyncMock,
        refresh: AsyncMock,
        caplog: LogCaptureFixture,
    ):
        """Test that a failed robot call does not escape the message handler"""
        mock_robot.pause_cleaning = AsyncMock(side_effect=NucleoError("pauseCleaning", "ko"))

        await router.handle_message("/pause/set", "")

        refresh.assert_awaited_once()
        assert any("Command /pause/set failed" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_refresh_error_is_logged_not_raised(self, router: CommandRouter, refresh: AsyncMock):
        """Test that a failed post-command refresh does not escape the message handler"""
        refresh.side_effect = NucleoError("getRobotState", "ko")

        await router.handle_message("/stop/set", "")

        refresh.assert_awaited_once()
