from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import dotenv
import uvloop

from neato_mqtt.config import BridgeSettings, load_settings
from neato_mqtt.const import (
    MQTT_CLIENT_START_TASK_NAME,
    NEATO_CONFIG_FILE_PATH,
    NEATO_DEBUG,
    NEATO_LOG_NAME,
    NEATO_VERSION,
)
from neato_mqtt.correlation import correlation_context, ensure_correlation_id
from neato_mqtt.exceptions import NeatoBridgeError, NeatoConfigError
from neato_mqtt.logging_abstraction import get_logger, set_package_level
from neato_mqtt.mqtt.client import MQTTClient
from neato_mqtt.nucleo import BeeHiveClient, NucleoClient, Robot
from neato_mqtt.service import NeatoMqttService

logger = get_logger(__name__)

# Suppress verbose MQTT library warnings
mqtt_logger = logging.getLogger("mqtt")
mqtt_logger.setLevel(logging.ERROR)
mqtt_logger.propagate = False


async def validate_secret_key(settings: BridgeSettings) -> None:
    """Make sure the robot's serial number and secret key are configured.

    When they are missing but account credentials are present, the robots
    registered to the account are logged so their serial and secret key can
    be copied into the config; startup is aborted either way.

    Raises:
        NeatoConfigError: Serial number or secret key missing

    """
    lp = "validate_secret_key:"
    if settings.has_robot_credentials:
        return

    if not (settings.email and settings.password):
        msg = "serial_number and secret_key are required (set email and password to look them up)"
        raise NeatoConfigError(msg)

    logger.warning("%s serial_number/secret_key not configured, listing robots for %s", lp, settings.email)
    beehive = BeeHiveClient(settings.email, settings.password, base_url=settings.beehive_base_url)
    try:
        robots = await beehive.get_robots()
    finally:
        await beehive.close()

    if not robots:
        logger.warning("%s No robots registered to this account", lp)
    for robot in robots:
        logger.info(
            "%s Found robot '%s'",
            lp,
            robot.name,
            extra={"serial_number": robot.serial, "secret_key": robot.secret_key, "model": robot.model},
        )
    msg = "Copy serial_number and secret_key of your robot from the log into the configuration"
    raise NeatoConfigError(msg)


class NeatoBridge:
    lp: str = "NeatoBridge:"

    def __init__(self, settings: BridgeSettings) -> None:
        self.settings: BridgeSettings = settings
        self.loop: asyncio.AbstractEventLoop = uvloop.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self.robot: Robot | None = None
        self.mqtt_client: MQTTClient | None = None
        self.service: NeatoMqttService | None = None
        self._stop_task: asyncio.Task[None] | None = None

        logger.info(" Initializing Neato MQTT bridge", extra={"version": NEATO_VERSION})

        self.loop.add_signal_handler(signal.SIGINT, self.signal_handler, signal.SIGINT)
        self.loop.add_signal_handler(signal.SIGTERM, self.signal_handler, signal.SIGTERM)
        logger.debug("Signal handlers configured for SIGINT & SIGTERM")

    def signal_handler(self, signum: int) -> None:
        logger.info("%s Intercepted signal: %s (%s)", self.lp, signal.Signals(signum).name, signum)
        if self._stop_task is None:
            self._stop_task = self.loop.create_task(self.stop())

    async def start(self) -> None:
        """Validate credentials, wire the robot, service and MQTT client, then run until stopped."""
        _ = ensure_correlation_id()
        s = self.settings
        await validate_secret_key(s)
        assert s.serial_number is not None
        assert s.secret_key is not None

        nucleo = NucleoClient(
            s.serial_number,
            s.secret_key,
            base_url=s.nucleo_base_url,
            ca_file=s.nucleo_ca_file,
        )
        self.robot = Robot(nucleo)
        self.mqtt_client = MQTTClient(s)
        self.service = NeatoMqttService(s.topic_root, self.robot, self.mqtt_client, s.refresh_interval)
        self.mqtt_client.set_handlers(self.service.handle_message, self.service.on_mqtt_connected)

        logger.info(
            " Starting MQTT client...",
            extra={"topic_root": s.topic_root, "broker": f"{s.mqtt_host}:{s.mqtt_port}"},
        )
        self.mqtt_client.start_task = m_start = asyncio.Task(
            self.mqtt_client.start(),
            name=MQTT_CLIENT_START_TASK_NAME,
        )
        try:
            await m_start
        except asyncio.CancelledError:
            if self._stop_task is None:
                raise
            logger.debug("%s MQTT client task cancelled by shutdown", self.lp)
        except Exception:
            logger.exception("%s Service startup failed", self.lp)
            await self.stop()
            raise

        if self._stop_task is not None:
            await self._stop_task

    async def stop(self) -> None:
        """Stop the service, disconnect MQTT and close the HTTP session."""
        logger.info(" Shutting down Neato MQTT bridge...")
        if self.service is not None:
            await self.service.stop()
        if self.mqtt_client is not None:
            await self.mqtt_client.stop()
        if self.robot is not None:
            await self.robot.close()


def parse_cli(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Neato robot vacuum to MQTT bridge")
    _ = parser.add_argument(
        "--config",
        help="Path to the YAML configuration file",
        default=Path(NEATO_CONFIG_FILE_PATH),
        type=Path,
    )
    _ = parser.add_argument("--env", help="Path to the environment file", default=None, type=Path)
    _ = parser.add_argument(
        "-D",
        "--debug",
        action="store_true",
        help="Enable debug mode",
    )
    args = parser.parse_args(argv)

    if args.env:
        env_path = args.env.expanduser().resolve()
        if not env_path.exists():
            logger.error("Environment file not found", extra={"path": str(env_path)})
        elif dotenv.load_dotenv(env_path, override=True):
            logger.info(" Environment variables loaded", extra={"source": str(env_path)})
        else:
            logger.warning("No environment variables loaded from file", extra={"path": str(env_path)})

    return args


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the Neato MQTT bridge."""
    with correlation_context():
        logger.info("Starting Neato MQTT bridge", extra={"version": NEATO_VERSION})
        args = parse_cli(argv)

        if args.debug or NEATO_DEBUG:
            set_package_level(logging.DEBUG, NEATO_LOG_NAME)
            logger.info("Debug logging enabled")

        try:
            settings = load_settings(args.config.expanduser())
        except NeatoConfigError:
            logger.exception("Configuration error")
            return 1

        bridge = NeatoBridge(settings)
        try:
            bridge.loop.run_until_complete(bridge.start())
        except NeatoBridgeError:
            logger.exception(" Neato MQTT bridge failed")
            return 1
        except KeyboardInterrupt:
            logger.info("Keyboard interrupt received, shutting down...")
        except Exception:
            logger.exception(" Fatal error in main loop")
            return 1
        else:
            logger.info(" Neato MQTT bridge stopped gracefully")
        finally:
            if not bridge.loop.is_closed():
                bridge.loop.close()
            logger.info("Neato MQTT bridge shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
