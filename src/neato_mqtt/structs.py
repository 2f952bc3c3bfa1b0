"""Core data structures and typing protocols for the Neato MQTT bridge."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from typing import Any, Protocol, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

__all__ = [
    "ActionType",
    "CleaningCategory",
    "CleaningFrequency",
    "CleaningMode",
    "CleaningState",
    "NavigationMode",
    "NeatoEnum",
    "PublisherProtocol",
    "RobotDetails",
    "RobotProtocol",
    "RobotState",
    "RobotStateType",
    "ServiceState",
    "StartCleaningParameters",
]


class NeatoEnum(IntEnum):
    """Nucleo numeric code with a PascalCase display name.

    The display name is what gets published (``CleaningCategory.HOUSE`` is
    published as ``House``) and what :meth:`parse` reads back.
    """

    @property
    def display_name(self) -> str:
        return "".join(part.capitalize() for part in self.name.split("_"))

    @classmethod
    def parse(cls, value: object) -> Self:
        """Parse a member from itself, its numeric code, or its display name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return cls(int(text))
            wanted = text.replace("_", "").casefold()
            for member in cls:
                if member.display_name.casefold() == wanted:
                    return member
        msg = f"{value!r} is not a valid {cls.__name__}"
        raise ValueError(msg)


class RobotStateType(NeatoEnum):
    INVALID = 0
    IDLE = 1
    BUSY = 2
    PAUSED = 3
    ERROR = 4


class ActionType(NeatoEnum):
    INVALID = 0
    HOUSE_CLEANING = 1
    SPOT_CLEANING = 2
    MANUAL_CLEANING = 3
    DOCKING = 4
    USER_MENU_ACTIVE = 5
    SUSPENDED_CLEANING = 6
    UPDATING = 7
    COPYING_LOGS = 8
    RECOVERING_LOCATION = 9
    IEC_TEST = 10
    MAP_CLEANING = 11
    EXPLORING_MAP = 12
    ACQUIRING_PERSISTENT_MAP_IDS = 13
    CREATING_AND_UPLOADING_MAP = 14
    SUSPENDED_EXPLORATION = 15


class CleaningCategory(NeatoEnum):
    INVALID = 0
    MANUAL = 1
    HOUSE = 2
    SPOT = 3
    MAP = 4


class CleaningMode(NeatoEnum):
    INVALID = 0
    ECO = 1
    TURBO = 2


class CleaningFrequency(NeatoEnum):
    """Cleaning ``modifier``: single or double pass."""

    INVALID = 0
    NORMAL = 1
    DOUBLE = 2


class NavigationMode(NeatoEnum):
    INVALID = 0
    NORMAL = 1
    EXTRA_CARE = 2
    DEEP = 3


_NUCLEO_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)


class CleaningState(BaseModel):
    """The ``cleaning`` block of a robot state reply."""

    model_config = _NUCLEO_MODEL_CONFIG

    category: CleaningCategory = CleaningCategory.INVALID
    mode: CleaningMode = CleaningMode.INVALID
    modifier: CleaningFrequency = CleaningFrequency.INVALID
    navigation_mode: NavigationMode = NavigationMode.INVALID
    spot_width: int = 0
    spot_height: int = 0


class RobotDetails(BaseModel):
    """The ``details`` block of a robot state reply."""

    model_config = _NUCLEO_MODEL_CONFIG

    charge: int = 0
    is_charging: bool = False
    is_docked: bool = False
    is_schedule_enabled: bool = False


class RobotState(BaseModel):
    """One immutable reading of the robot, as returned by Nucleo ``getRobotState``.

    Example reply (abridged)::

        {
            "result": "ok",
            "state": 1,
            "action": 0,
            "error": null,
            "alert": null,
            "cleaning": {"category": 2, "mode": 1, "modifier": 1, "navigationMode": 1,
                         "spotWidth": 0, "spotHeight": 0},
            "details": {"isCharging": false, "isDocked": true, "isScheduleEnabled": false,
                        "dockHasBeenSeen": false, "charge": 98}
        }
    """

    model_config = _NUCLEO_MODEL_CONFIG

    state: RobotStateType
    action: ActionType = ActionType.INVALID
    alert: str | None = None
    error: str | None = None
    cleaning: CleaningState = Field(default_factory=CleaningState)
    details: RobotDetails = Field(default_factory=RobotDetails)


class StartCleaningParameters(BaseModel):
    """Parameters of the Nucleo ``startCleaning`` command.

    Accepts enum members, numeric codes or display names, and field names in
    any case (``navigationMode``, ``NavigationMode``, ``navigation_mode``).
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    category: CleaningCategory
    mode: CleaningMode
    modifier: CleaningFrequency = CleaningFrequency.NORMAL
    navigation_mode: NavigationMode = NavigationMode.NORMAL

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        fields = {name.replace("_", ""): name for name in cls.model_fields}
        normalized: dict[str, Any] = {}
        for key, value in data.items():
            field_name = fields.get(str(key).replace("_", "").casefold())
            if field_name is not None:
                normalized[field_name] = value
        return normalized

    @field_validator("category", "mode", "modifier", "navigation_mode", mode="before")
    @classmethod
    def _parse_enum(cls, value: object, info: ValidationInfo) -> NeatoEnum:
        enum_type: type[NeatoEnum] = cls.model_fields[info.field_name].annotation  # type: ignore[assignment]
        return enum_type.parse(value)

    def to_nucleo_params(self) -> dict[str, int]:
        """Serialize to the ``params`` object of a ``startCleaning`` request."""
        return self.model_dump(mode="json", by_alias=True)


class ServiceState(StrEnum):
    """Lifecycle of :class:`neato_mqtt.service.NeatoMqttService`."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class RobotProtocol(Protocol):
    """Device operations the bridge needs from a robot client."""

    async def get_robot_state(self) -> RobotState:
        """Fetch the current robot state."""
        ...

    async def send_to_base(self) -> None: ...

    async def find_me(self) -> None: ...

    async def start_cleaning(self, params: StartCleaningParameters) -> None: ...

    async def stop_cleaning(self) -> None: ...

    async def pause_cleaning(self) -> None: ...

    async def resume_cleaning(self) -> None: ...

    async def start_persistent_map_exploration(self) -> None: ...

    async def enable_schedule(self) -> None: ...

    async def disable_schedule(self) -> None: ...

    async def dismiss_current_alert(self) -> None: ...


class PublisherProtocol(Protocol):
    """Retained, at-least-once publishing of one topic value."""

    async def publish(self, topic: str, value: str) -> bool:
        """Publish ``value`` on ``topic``; return False (after logging) on failure."""
        ...
