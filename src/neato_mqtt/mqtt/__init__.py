"""MQTT package for the Neato bridge.

- topics.py: Topic names and robot state to topic map rendering
- state_updates.py: State cache, diffing and state publishing
- command_routing.py: ``<root>/<action>/set`` command dispatch
- client.py: MQTTClient with connection lifecycle and publishing
"""

from .client import MQTTClient
from .command_routing import CommandRouter
from .state_updates import StateCache, StateUpdateHelper, diff_topic_maps
from .topics import build_topic_map, command_filter, topic_root

__all__ = [
    "CommandRouter",
    "MQTTClient",
    "StateCache",
    "StateUpdateHelper",
    "build_topic_map",
    "command_filter",
    "diff_topic_maps",
    "topic_root",
]
