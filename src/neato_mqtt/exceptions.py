"""Exception hierarchy for the Neato MQTT bridge."""

from __future__ import annotations


class NeatoBridgeError(Exception):
    """Base class for all bridge errors."""


class NeatoConfigError(NeatoBridgeError):
    """Configuration is missing or invalid."""


class CommandDecodeError(NeatoBridgeError):
    """A structured command payload could not be decoded.

    Attributes:
        topic_suffix: Command topic suffix the payload arrived on
        payload: Raw payload text

    """

    def __init__(self, topic_suffix: str, payload: str, reason: str) -> None:
        """Initialize decode error with the offending payload."""
        self.topic_suffix: str = topic_suffix
        self.payload: str = payload
        self.reason: str = reason
        super().__init__(f"Cannot decode payload for {topic_suffix}: {reason}")


class StateCacheError(NeatoBridgeError):
    """A command needed a cached state value that is not available.

    Raised when the state cache has not been populated by the startup
    publish yet, or the requested topic is not part of it.

    Attributes:
        topic: Fully-qualified state topic that was looked up

    """

    def __init__(self, topic: str) -> None:
        """Initialize state cache error with the missing topic."""
        self.topic: str = topic
        super().__init__(f"No cached state for topic: {topic}")


class NucleoError(NeatoBridgeError):
    """The Nucleo API rejected a robot command.

    Attributes:
        command: Nucleo command name (e.g. "startCleaning")
        result: The "result" field returned by the robot, if any

    """

    def __init__(self, command: str, result: str | None, message: str | None = None) -> None:
        """Initialize Nucleo error with command and result."""
        self.command: str = command
        self.result: str | None = result
        super().__init__(message or f"Robot command '{command}' failed: result={result}")


class BeeHiveAuthenticationError(NeatoBridgeError):
    """Logging in to the Neato BeeHive account API failed."""
