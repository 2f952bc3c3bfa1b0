"""MQTT command routing for message handling.

Maps the suffix of a ``<root>/<action>/set`` topic to a robot operation and
refreshes the published state after every command.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from pydantic import ValidationError

from neato_mqtt.correlation import correlation_context
from neato_mqtt.exceptions import CommandDecodeError
from neato_mqtt.logging_abstraction import get_logger
from neato_mqtt.mqtt.topics import (
    CATEGORY_SUFFIX,
    DISMISS_ALERT_SUFFIX,
    DOCK_SUFFIX,
    ENABLE_SCHEDULE_SUFFIX,
    FIND_ME_SUFFIX,
    MAP_EXPLORATION_SUFFIX,
    MODE_SUFFIX,
    NAVIGATION_MODE_SUFFIX,
    PAUSE_SUFFIX,
    RESUME_SUFFIX,
    START_SUFFIX,
    STOP_SUFFIX,
)
from neato_mqtt.structs import (
    CleaningCategory,
    CleaningFrequency,
    CleaningMode,
    NavigationMode,
    StartCleaningParameters,
)

if TYPE_CHECKING:
    from neato_mqtt.mqtt.state_updates import StateCache
    from neato_mqtt.structs import RobotProtocol

logger = get_logger(__name__)

CommandHandler = Callable[[str], Awaitable[None]]


class CommandRouter:
    """Routes commands received on ``<root>/+/set`` to the robot."""

    lp: str = "router:"

    def __init__(
        self,
        root: str,
        robot: RobotProtocol,
        cache: StateCache,
        refresh: Callable[[], Awaitable[object]],
    ) -> None:
        """Initialize the command router.

        Args:
            root: Topic root the commands are received under
            robot: Device client the commands are sent to
            cache: State cache read for sibling values of ``/start/set``
            refresh: Incremental refresh run after every command

        """
        self.root: str = root
        self.robot: RobotProtocol = robot
        self.cache: StateCache = cache
        self._refresh: Callable[[], Awaitable[object]] = refresh
        self._handlers: dict[str, CommandHandler] = {
            DOCK_SUFFIX: self._handle_dock,
            FIND_ME_SUFFIX: self._handle_find_me,
            START_SUFFIX: self._handle_start,
            STOP_SUFFIX: self._handle_stop,
            PAUSE_SUFFIX: self._handle_pause,
            RESUME_SUFFIX: self._handle_resume,
            MAP_EXPLORATION_SUFFIX: self._handle_map_exploration,
            ENABLE_SCHEDULE_SUFFIX: self._handle_enable_schedule,
            DISMISS_ALERT_SUFFIX: self._handle_dismiss_alert,
        }

    @property
    def topic_suffixes(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    async def _handle_dock(self, _payload: str) -> None:
        await self.robot.send_to_base()

    async def _handle_find_me(self, _payload: str) -> None:
        await self.robot.find_me()

    async def _handle_start(self, payload: str) -> None:
        if payload and "{" in payload:
            params = self.decode_start_parameters(payload)
        else:
            params = self.cached_start_parameters()
        logger.info(
            "%s start_cleaning: category=%s mode=%s modifier=%s navigation_mode=%s",
            self.lp,
            params.category.display_name,
            params.mode.display_name,
            params.modifier.display_name,
            params.navigation_mode.display_name,
        )
        await self.robot.start_cleaning(params)

    async def _handle_stop(self, _payload: str) -> None:
        await self.robot.stop_cleaning()

    async def _handle_pause(self, _payload: str) -> None:
        await self.robot.pause_cleaning()

    async def _handle_resume(self, _payload: str) -> None:
        await self.robot.resume_cleaning()

    async def _handle_map_exploration(self, _payload: str) -> None:
        await self.robot.start_persistent_map_exploration()

    async def _handle_enable_schedule(self, payload: str) -> None:
        if payload == "true":
            await self.robot.enable_schedule()
        else:
            await self.robot.disable_schedule()

    async def _handle_dismiss_alert(self, _payload: str) -> None:
        await self.robot.dismiss_current_alert()

    def decode_start_parameters(self, payload: str) -> StartCleaningParameters:
        """Decode a JSON ``/start/set`` payload.

        Raises:
            CommandDecodeError: The payload is not valid JSON or lacks required fields

        """
        try:
            return StartCleaningParameters.model_validate_json(payload)
        except ValidationError as e:
            raise CommandDecodeError(START_SUFFIX, payload, str(e)) from e

    def cached_start_parameters(self) -> StartCleaningParameters:
        """Build start parameters from the last published cleaning settings.

        Raises:
            StateCacheError: The cache has not been populated yet

        """
        return StartCleaningParameters(
            category=CleaningCategory.parse(self.cache.get(f"{self.root}{CATEGORY_SUFFIX}")),
            mode=CleaningMode.parse(self.cache.get(f"{self.root}{MODE_SUFFIX}")),
            modifier=CleaningFrequency.NORMAL,
            navigation_mode=NavigationMode.parse(self.cache.get(f"{self.root}{NAVIGATION_MODE_SUFFIX}")),
        )

    async def route(self, topic_suffix: str, payload: str) -> None:
        """Run the robot operation for ``topic_suffix``, then refresh state.

        The refresh runs whether the operation succeeded, failed or the
        suffix is unknown; an operation error is re-raised after it.
        """
        lp = f"{self.lp}route:"
        handler = self._handlers.get(topic_suffix)
        try:
            if handler is None:
                logger.warning("%s Unknown command topic: %s%s => %r", lp, self.root, topic_suffix, payload)
            else:
                await handler(payload)
        finally:
            await self._refresh()

    async def handle_message(self, topic_suffix: str, payload: str) -> None:
        """Entry point for one inbound command; errors are logged, never raised."""
        lp = f"{self.lp}rcv:"
        with correlation_context():
            logger.info(
                "%s >>> MQTT MESSAGE RECEIVED: topic=%s%s, payload=%s",
                lp,
                self.root,
                topic_suffix,
                payload,
                extra={"command": topic_suffix},
            )
            try:
                await self.route(topic_suffix, payload)
            except CommandDecodeError:
                logger.exception("%s bad %s payload: %r", lp, topic_suffix, payload)
            except Exception:
                logger.exception("%s Command %s failed", lp, topic_suffix)
