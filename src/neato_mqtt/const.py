import os

from neato_mqtt import __version__

__all__ = [
    "BEEHIVE_API_BASE",
    "DEFAULT_REFRESH_INTERVAL",
    "MQTT_CLIENT_START_TASK_NAME",
    "NEATO_CONFIG_FILE_PATH",
    "NEATO_DEBUG",
    "NEATO_LOG_FORMAT",
    "NEATO_LOG_HUMAN_OUTPUT",
    "NEATO_LOG_JSON_FILE",
    "NEATO_LOG_NAME",
    "NEATO_MQTT_CONN_DELAY",
    "NEATO_PERF_THRESHOLD_MS",
    "NEATO_PERF_TRACKING",
    "NEATO_TOPIC_PREFIX",
    "NEATO_VERSION",
    "NUCLEO_ACCEPT_HEADER",
    "NUCLEO_API_BASE",
    "REFRESH_TIMER_TASK_NAME",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")
NEATO_LOG_NAME: str = "neato_mqtt"

NEATO_VERSION: str = __version__

NUCLEO_API_BASE: str = "https://nucleo.neatocloud.com:4443/vendors/neato/robots/"
NUCLEO_ACCEPT_HEADER: str = "application/vnd.neato.nucleo.v1"
BEEHIVE_API_BASE: str = "https://beehive.neatocloud.com/"

NEATO_TOPIC_PREFIX: str = "neato"
DEFAULT_REFRESH_INTERVAL: int = 30

NEATO_CONFIG_FILE_PATH: str = os.environ.get("NEATO_CONFIG_FILE", "/config/neato_mqtt.yaml")
NEATO_MQTT_CONN_DELAY: int = int(os.environ.get("NEATO_MQTT_CONN_DELAY", "10"))

NEATO_DEBUG = os.environ.get("NEATO_DEBUG", "0").casefold() in YES_ANSWER

MQTT_CLIENT_START_TASK_NAME = "MQTTClient_START"
REFRESH_TIMER_TASK_NAME = "NeatoRefresh_TIMER"

# Logging Configuration
NEATO_LOG_FORMAT: str = os.environ.get("NEATO_LOG_FORMAT", "human")  # "json", "human", or "both"
NEATO_LOG_JSON_FILE: str | None = os.environ.get("NEATO_LOG_JSON_FILE") or None
NEATO_LOG_HUMAN_OUTPUT: str = os.environ.get("NEATO_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

# Performance Instrumentation
NEATO_PERF_TRACKING: bool = os.environ.get("NEATO_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("NEATO_PERF_THRESHOLD_MS", "2000")
NEATO_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 2000
