"""Topic layout of one robot and the mapping of robot state onto it.

State topics are ``<root>/<field path>``; command topics are
``<root>/<action>/set``. ``<root>`` is ``neato/<robot name>``.
"""

from __future__ import annotations

from neato_mqtt.const import NEATO_TOPIC_PREFIX
from neato_mqtt.structs import RobotState

__all__ = [
    "CATEGORY_SUFFIX",
    "CHARGE_SUFFIX",
    "COMMAND_FILTER_SUFFIX",
    "DISMISS_ALERT_SUFFIX",
    "DOCK_SUFFIX",
    "ENABLE_SCHEDULE_SUFFIX",
    "FIND_ME_SUFFIX",
    "MAP_EXPLORATION_SUFFIX",
    "MODE_SUFFIX",
    "NAVIGATION_MODE_SUFFIX",
    "PAUSE_SUFFIX",
    "RESUME_SUFFIX",
    "START_SUFFIX",
    "STATE_TOPIC_SUFFIXES",
    "STOP_SUFFIX",
    "build_topic_map",
    "command_filter",
    "topic_root",
]

# State topics, in publish order
STATE_SUFFIX = "/state"
ACTION_SUFFIX = "/action"
ALERT_SUFFIX = "/alert"
ERROR_SUFFIX = "/error"
CATEGORY_SUFFIX = "/cleaning/category"
MODE_SUFFIX = "/cleaning/mode"
NAVIGATION_MODE_SUFFIX = "/cleaning/navigationMode"
SPOT_WIDTH_SUFFIX = "/cleaning/spotWidth"
SPOT_HEIGHT_SUFFIX = "/cleaning/spotHeight"
CHARGE_SUFFIX = "/details/charge"
IS_CHARGING_SUFFIX = "/details/isCharging"
IS_DOCKED_SUFFIX = "/details/isDocked"
IS_SCHEDULE_ENABLED_SUFFIX = "/details/isScheduleEnabled"

STATE_TOPIC_SUFFIXES: tuple[str, ...] = (
    STATE_SUFFIX,
    ACTION_SUFFIX,
    ALERT_SUFFIX,
    ERROR_SUFFIX,
    CATEGORY_SUFFIX,
    MODE_SUFFIX,
    NAVIGATION_MODE_SUFFIX,
    SPOT_WIDTH_SUFFIX,
    SPOT_HEIGHT_SUFFIX,
    CHARGE_SUFFIX,
    IS_CHARGING_SUFFIX,
    IS_DOCKED_SUFFIX,
    IS_SCHEDULE_ENABLED_SUFFIX,
)

# Command topics
COMMAND_FILTER_SUFFIX = "/+/set"
DOCK_SUFFIX = "/dock/set"
FIND_ME_SUFFIX = "/findMe/set"
START_SUFFIX = "/start/set"
STOP_SUFFIX = "/stop/set"
PAUSE_SUFFIX = "/pause/set"
RESUME_SUFFIX = "/resume/set"
MAP_EXPLORATION_SUFFIX = "/startPersistentMapExploration/set"
ENABLE_SCHEDULE_SUFFIX = "/enableSchedule/set"
DISMISS_ALERT_SUFFIX = "/dismissCurrentAlert/set"


def topic_root(neato_name: str) -> str:
    """Topic root of one robot, e.g. ``neato/kitchen``."""
    return f"{NEATO_TOPIC_PREFIX}/{neato_name}"


def command_filter(root: str) -> str:
    """Subscription filter matching every command topic of a robot."""
    return f"{root}{COMMAND_FILTER_SUFFIX}"


def build_topic_map(root: str, state: RobotState) -> dict[str, str]:
    """Flatten a robot state into ``{topic: value}``.

    Every topic in :data:`STATE_TOPIC_SUFFIXES` is always present. Enums are
    rendered by display name, booleans as ``True``/``False`` and missing
    alert or error text as an empty string.
    """
    cleaning = state.cleaning
    details = state.details
    values = (
        state.state.display_name,
        state.action.display_name,
        state.alert or "",
        state.error or "",
        cleaning.category.display_name,
        cleaning.mode.display_name,
        cleaning.navigation_mode.display_name,
        str(cleaning.spot_width),
        str(cleaning.spot_height),
        str(details.charge),
        str(details.is_charging),
        str(details.is_docked),
        str(details.is_schedule_enabled),
    )
    return {f"{root}{suffix}": value for suffix, value in zip(STATE_TOPIC_SUFFIXES, values, strict=True)}
