"""Shared fixtures for unit tests.

This module provides reusable fixtures for testing the Neato MQTT bridge.
"""

from __future__ import annotations

import secrets
from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest

from neato_mqtt.structs import RobotState

ROOT = "neato/kitchen"

JSONDict = dict[str, object]


def make_state_reply(**overrides: object) -> JSONDict:
    """Nucleo ``getRobotState`` reply for a docked, idle robot at 80% charge."""
    reply: JSONDict = {
        "version": 1,
        "reqId": "1",
        "result": "ok",
        "error": None,
        "alert": None,
        "state": 1,
        "action": 0,
        "cleaning": {
            "category": 2,
            "mode": 1,
            "modifier": 1,
            "navigationMode": 1,
            "spotWidth": 0,
            "spotHeight": 0,
        },
        "details": {
            "isCharging": False,
            "isDocked": True,
            "isScheduleEnabled": False,
            "dockHasBeenSeen": False,
            "charge": 80,
        },
    }
    reply.update(overrides)
    return reply


def make_state(**overrides: object) -> RobotState:
    return RobotState.model_validate(make_state_reply(**overrides))


def with_charge(state: RobotState, charge: int) -> RobotState:
    """Copy of ``state`` with a different battery charge."""
    return state.model_copy(update={"details": state.details.model_copy(update={"charge": charge})})


@pytest.fixture
def root() -> str:
    return ROOT


@pytest.fixture
def robot_state() -> RobotState:
    """Idle, docked robot: House / Eco / Normal navigation, 80% charge."""
    return make_state()


@pytest.fixture
def mock_robot(robot_state: RobotState) -> AsyncMock:
    """Mock robot client.

    Returns an AsyncMock whose get_robot_state() yields ``robot_state`` and
    whose command methods do nothing.
    """
    robot = AsyncMock()
    robot.get_robot_state = AsyncMock(return_value=robot_state)
    return robot


@pytest.fixture
def mock_publisher() -> AsyncMock:
    """Mock publisher whose publish() always succeeds."""
    publisher = AsyncMock()
    publisher.publish = AsyncMock(return_value=True)
    return publisher


@pytest.fixture
def dummy_secret() -> str:
    """Non-literal secret for tests."""
    return secrets.token_hex(16)


StateFactory = Callable[..., RobotState]


@pytest.fixture
def state_factory() -> StateFactory:
    """Build RobotState objects from a default reply with top-level overrides."""
    return make_state


@pytest.fixture
def charge_factory() -> Callable[[RobotState, int], RobotState]:
    return with_charge
