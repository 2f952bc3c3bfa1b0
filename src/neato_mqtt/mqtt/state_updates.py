"""MQTT state update helper for robot state publishing.

Fetches the robot state, flattens it into topics, and publishes either every
topic (startup / reconnect) or only the topics whose value changed since the
last refresh.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import TYPE_CHECKING

from neato_mqtt.exceptions import StateCacheError
from neato_mqtt.instrumentation import timed_async
from neato_mqtt.logging_abstraction import get_logger
from neato_mqtt.mqtt.topics import build_topic_map

if TYPE_CHECKING:
    from neato_mqtt.structs import PublisherProtocol, RobotProtocol, RobotState

logger = get_logger(__name__)


def diff_topic_maps(old: Mapping[str, str], new: Mapping[str, str]) -> dict[str, str]:
    """Entries of ``new`` whose value differs from ``old``.

    A key missing from ``old`` counts as changed. Values always come from
    ``new``; neither input is modified.
    """
    return {topic: value for topic, value in new.items() if old.get(topic) != value}


class StateCache:
    """Last published topic map of one robot.

    Replaced wholesale by every refresh, never edited in place. Refreshes
    hold :attr:`lock` while they read the old map, diff and replace it.
    """

    def __init__(self) -> None:
        self.lock: asyncio.Lock = asyncio.Lock()
        self._topic_map: dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._topic_map)

    @property
    def is_populated(self) -> bool:
        return bool(self._topic_map)

    def get(self, topic: str) -> str:
        """Cached value of ``topic``.

        Raises:
            StateCacheError: The cache is empty or has no such topic

        """
        try:
            return self._topic_map[topic]
        except KeyError:
            raise StateCacheError(topic) from None

    def snapshot(self) -> dict[str, str]:
        """Copy of the cached topic map."""
        return dict(self._topic_map)

    def replace(self, topic_map: Mapping[str, str]) -> None:
        self._topic_map = dict(topic_map)


class StateUpdateHelper:
    """Publishes robot state for one topic root."""

    lp: str = "state:"

    def __init__(
        self,
        root: str,
        robot: RobotProtocol,
        publisher: PublisherProtocol,
        cache: StateCache,
    ) -> None:
        """Initialize the state update helper.

        Args:
            root: Topic root, e.g. ``neato/kitchen``
            robot: Device client used to fetch state
            publisher: Retained, at-least-once publisher
            cache: State cache shared with the command router

        """
        self.root: str = root
        self.robot: RobotProtocol = robot
        self.publisher: PublisherProtocol = publisher
        self.cache: StateCache = cache

    @timed_async("get_robot_state")
    async def _fetch_topic_map(self) -> dict[str, str]:
        state: RobotState = await self.robot.get_robot_state()
        return build_topic_map(self.root, state)

    async def _publish_entries(self, entries: Mapping[str, str], lp: str) -> int:
        """Publish each entry; a failed publish does not stop the rest. Returns the failure count."""
        failed = 0
        for topic, value in entries.items():
            if not await self.publisher.publish(topic, value):
                failed += 1
        if failed:
            logger.warning("%s %d of %d publish(es) failed", lp, failed, len(entries))
        return failed

    async def publish_all_state(self) -> dict[str, str]:
        """Fetch state, publish every topic and store the map in the cache."""
        lp = f"{self.lp}publish_all:"
        topic_map = await self._fetch_topic_map()
        logger.info("%s Publishing %d state topics under %s", lp, len(topic_map), self.root)
        await self._publish_entries(topic_map, lp)
        async with self.cache.lock:
            self.cache.replace(topic_map)
        return topic_map

    async def refresh_state(self) -> dict[str, str]:
        """Fetch state, publish only changed topics and replace the cache.

        The cache is replaced even when nothing changed. Returns the changed
        entries.
        """
        lp = f"{self.lp}refresh:"
        topic_map = await self._fetch_topic_map()
        async with self.cache.lock:
            updates = diff_topic_maps(self.cache.snapshot(), topic_map)
            self.cache.replace(topic_map)

        if updates:
            logger.info(
                "%s Publishing %d changed topic(s)",
                lp,
                len(updates),
                extra={"topics": ",".join(t.removeprefix(self.root) for t in updates)},
            )
            await self._publish_entries(updates, lp)
        else:
            logger.debug("%s No state changes", lp)
        return updates
