"""neato-mqtt - bridge a Neato robot vacuum to an MQTT topic namespace."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("neato-mqtt")
except PackageNotFoundError:
    __version__ = "0+local"
