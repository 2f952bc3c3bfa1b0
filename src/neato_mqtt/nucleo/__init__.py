"""Neato cloud clients: Nucleo (robot messaging) and BeeHive (account)."""

from .beehive import BeeHiveClient, BeeHiveRobot
from .client import NucleoClient
from .robot import Robot

__all__ = [
    "BeeHiveClient",
    "BeeHiveRobot",
    "NucleoClient",
    "Robot",
]
