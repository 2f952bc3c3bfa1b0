"""Bridge service: owns the state cache and drives full and incremental publishes."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from neato_mqtt.const import REFRESH_TIMER_TASK_NAME
from neato_mqtt.correlation import correlation_context
from neato_mqtt.logging_abstraction import get_logger
from neato_mqtt.mqtt.command_routing import CommandRouter
from neato_mqtt.mqtt.state_updates import StateCache, StateUpdateHelper
from neato_mqtt.structs import ServiceState

if TYPE_CHECKING:
    from neato_mqtt.structs import PublisherProtocol, RobotProtocol

logger = get_logger(__name__)


class NeatoMqttService:
    """Publishes one robot's state under ``root`` and executes its commands.

    Lifecycle: ``STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED``.
    ``start()`` publishes every state topic and starts the refresh timer;
    ``stop()`` cancels the timer without a final refresh.
    """

    lp: str = "service:"

    def __init__(
        self,
        root: str,
        robot: RobotProtocol,
        publisher: PublisherProtocol,
        refresh_interval: float,
    ) -> None:
        """Initialize the bridge service.

        Args:
            root: Topic root, e.g. ``neato/kitchen``
            robot: Device client
            publisher: Retained, at-least-once publisher
            refresh_interval: Seconds between timer refreshes

        """
        self.root: str = root
        self.refresh_interval: float = refresh_interval
        self.state: ServiceState = ServiceState.STOPPED
        self.cache: StateCache = StateCache()
        self.state_updates: StateUpdateHelper = StateUpdateHelper(root, robot, publisher, self.cache)
        self.command_router: CommandRouter = CommandRouter(root, robot, self.cache, self.refresh)
        self._timer_task: asyncio.Task[None] | None = None
        self._refresh_tasks: set[asyncio.Task[None]] = set()

    async def start(self) -> None:
        """Publish all state, then start the refresh timer.

        A failed full publish leaves the service ``STOPPED`` and re-raises.
        """
        lp = f"{self.lp}start:"
        if self.state is not ServiceState.STOPPED:
            logger.warning("%s Service already %s", lp, self.state)
            return

        self.state = ServiceState.STARTING
        logger.info("%s Starting", lp, extra={"root": self.root, "refresh_interval": self.refresh_interval})
        try:
            await self.state_updates.publish_all_state()
        except Exception:
            self.state = ServiceState.STOPPED
            logger.exception("%s Initial state publish failed", lp)
            raise

        self._timer_task = asyncio.create_task(self._refresh_timer(), name=REFRESH_TIMER_TASK_NAME)
        self.state = ServiceState.RUNNING
        logger.info("%s Running", lp)

    async def stop(self) -> None:
        """Cancel the refresh timer. In-flight refreshes and commands finish on their own."""
        lp = f"{self.lp}stop:"
        if self.state is ServiceState.STOPPED:
            return

        self.state = ServiceState.STOPPING
        if self._timer_task is not None and not self._timer_task.done():
            _ = self._timer_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer_task
        self._timer_task = None
        self.state = ServiceState.STOPPED
        logger.info("%s Stopped", lp)

    async def refresh(self) -> dict[str, str]:
        """Incremental refresh: publish only the topics whose value changed."""
        return await self.state_updates.refresh_state()

    async def publish_all_state(self) -> dict[str, str]:
        return await self.state_updates.publish_all_state()

    async def handle_message(self, topic_suffix: str, payload: str) -> None:
        await self.command_router.handle_message(topic_suffix, payload)

    async def on_mqtt_connected(self) -> None:
        """Start on the first broker connection; re-publish everything after a reconnect."""
        lp = f"{self.lp}connected:"
        if self.state is ServiceState.STOPPED:
            await self.start()
            return

        logger.info("%s Broker session re-established, re-publishing all state", lp)
        with correlation_context():
            try:
                await self.publish_all_state()
            except Exception:
                logger.exception("%s Re-publish after reconnect failed", lp)

    async def _refresh_timer(self) -> None:
        lp = f"{self.lp}timer:"
        logger.debug("%s Refreshing every %s seconds", lp, self.refresh_interval)
        while True:
            await asyncio.sleep(self.refresh_interval)
            task = asyncio.create_task(self._timed_refresh())
            self._refresh_tasks.add(task)
            task.add_done_callback(self._refresh_tasks.discard)

    async def _timed_refresh(self) -> None:
        lp = f"{self.lp}timer:"
        with correlation_context():
            try:
                _ = await self.refresh()
            except Exception:
                logger.exception("%s Scheduled refresh failed", lp)
