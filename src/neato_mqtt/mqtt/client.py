"""MQTT client core for the Neato bridge.

Owns the broker connection: connect and reconnect, retained QoS 1 publishing
and the ``<root>/+/set`` subscription. Inbound messages are handed to the
registered message handler as ``(topic_suffix, payload_text)``.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import aiomqtt

from neato_mqtt.exceptions import NeatoConfigError
from neato_mqtt.logging_abstraction import get_logger
from neato_mqtt.mqtt.topics import command_filter

if TYPE_CHECKING:
    from neato_mqtt.config import BridgeSettings

logger = get_logger(__name__)

MessageHandler = Callable[[str, str], Awaitable[None]]
ConnectionHandler = Callable[[], Awaitable[None]]

# broker reason codes for rejected credentials
_AUTH_FAILURE_CODES = ("code:134", "code:135")


def payload_text(payload: object) -> str:
    """Decode an aiomqtt payload to text; ``None`` becomes an empty string."""
    if payload is None:
        return ""
    if isinstance(payload, bytes | bytearray):
        return bytes(payload).decode("utf-8", errors="replace")
    return str(payload)


class MQTTClient:
    """Broker connection for one robot's topic root."""

    lp: str = "mqtt:"
    start_task: asyncio.Task[None] | None = None
    client: aiomqtt.Client | None = None
    message_handler: MessageHandler | None = None
    connection_handler: ConnectionHandler | None = None

    def __init__(self, settings: BridgeSettings) -> None:
        self.settings: BridgeSettings = settings
        self.topic: str = settings.topic_root
        self.broker_client_id: str = f"neato_mqtt_{settings.neato_name}_{uuid.uuid4().hex[:8]}"
        self._connected: bool = False
        self._message_tasks: set[asyncio.Task[None]] = set()

    @property
    def is_connected(self) -> bool:
        """Check if MQTT client is connected to the broker."""
        return self._connected

    def set_handlers(self, on_message: MessageHandler, on_connected: ConnectionHandler) -> None:
        """Register the inbound command handler and the (re)connection hook."""
        self.message_handler = on_message
        self.connection_handler = on_connected

    def _build_client(self) -> aiomqtt.Client:
        s = self.settings
        tls_params: aiomqtt.TLSParameters | None = None
        if s.mqtt_use_tls:
            tls_params = aiomqtt.TLSParameters(ca_certs=s.mqtt_tls_ca_file)
        return aiomqtt.Client(
            hostname=s.mqtt_host,
            port=s.mqtt_port,
            username=s.mqtt_user,
            password=s.mqtt_pass,
            identifier=self.broker_client_id,
            tls_params=tls_params,
            tls_insecure=s.mqtt_tls_insecure if s.mqtt_use_tls else None,
        )

    def _get_connection_delay(self, lp: str) -> int:
        """Get connection retry delay, defaulting to 5 seconds."""
        delay = self.settings.mqtt_conn_delay
        if delay <= 0:
            logger.debug(
                "%s MQTT connection delay is less than or equal to 0, which is probably a typo, setting to 5...",
                lp,
            )
            return 5
        return delay

    async def connect(self) -> bool:
        """Open a new broker session.

        Raises:
            NeatoConfigError: The broker rejected the credentials

        """
        lp = f"{self.lp}connect:"
        self._connected = False
        logger.debug("%s Connecting to MQTT broker...", lp)
        self.client = self._build_client()
        try:
            _ = await self.client.__aenter__()
        except aiomqtt.MqttError as mqtt_err_exc:
            # -> [Errno 111] Connection refused
            # [code:134] Bad user name or password
            logger.exception("%s Connection failed [MqttError]", lp)
            if any(code in str(mqtt_err_exc) for code in _AUTH_FAILURE_CODES):
                msg = f"MQTT broker rejected the credentials for user '{self.settings.mqtt_user}'"
                raise NeatoConfigError(msg) from mqtt_err_exc
            return False

        self._connected = True
        logger.info(
            "%s Connected to MQTT broker: %s port: %s",
            lp,
            self.settings.mqtt_host,
            self.settings.mqtt_port,
            extra={"tls": self.settings.mqtt_use_tls},
        )
        return True

    async def start(self) -> None:
        """Connect, run the connection hook, then receive until the session drops; repeat.

        An error from the connection hook ends the loop and propagates.
        """
        itr = 0
        lp = f"{self.lp}start:"
        while True:
            itr += 1
            if await self.connect():
                if itr > 1:
                    logger.info("%s Reconnected to MQTT broker (attempt %d)", lp, itr)
                if self.connection_handler is not None:
                    await self.connection_handler()
                try:
                    await self._start_receiver(lp)
                except aiomqtt.MqttError:
                    self._connected = False
                    continue
            else:
                delay = self._get_connection_delay(lp)
                logger.info(
                    "%s connecting to MQTT broker failed, sleeping for %s seconds before re-trying...",
                    lp,
                    delay,
                )
                await asyncio.sleep(delay)

    async def _start_receiver(self, lp: str) -> None:
        """Subscribe to the command filter and dispatch each message in its own task."""
        logger.info("%s Starting MQTT receiver...", lp)
        rcv_lp = f"{self.lp}rcv:"
        assert self.client is not None, "client must be initialized"
        topic_filter = command_filter(self.topic)
        await self.client.subscribe(topic_filter, qos=1)
        logger.debug("%s Subscribed to MQTT topic: %s. Waiting for MQTT messages...", rcv_lp, topic_filter)
        try:
            async for message in self.client.messages:
                self._dispatch(message.topic.value, message.payload)
        except asyncio.CancelledError:
            logger.debug("%s MQTT receiver task cancelled, propagating...", rcv_lp)
            raise
        except aiomqtt.MqttError as msg_err:
            logger.warning("%s MQTT error: %s", rcv_lp, msg_err)
            raise

    def _dispatch(self, topic: str, payload: object) -> None:
        lp = f"{self.lp}rcv:"
        if self.message_handler is None:
            logger.warning("%s No message handler registered, dropping message on %s", lp, topic)
            return
        topic_suffix = topic.removeprefix(self.topic)
        task = asyncio.create_task(self.message_handler(topic_suffix, payload_text(payload)))
        self._message_tasks.add(task)
        task.add_done_callback(self._message_tasks.discard)

    async def stop(self) -> None:
        lp = f"{self.lp}stop:"
        try:
            if self.client is not None and self._connected:
                logger.debug("%s Disconnecting from broker...", lp)
                await self.client.__aexit__(None, None, None)
        except aiomqtt.MqttError as ce:
            logger.warning("%s MQTT disconnect failed: %s", lp, ce)
        else:
            logger.info("%s Disconnected from MQTT broker", lp)
        finally:
            self._connected = False
            if self.start_task and not self.start_task.done():
                logger.debug("%s FINISHING: Cancelling start task", lp)
                _ = self.start_task.cancel()

    async def publish(self, topic: str, value: str) -> bool:
        """Publish a retained message with QoS 1 (at least once)."""
        lp = f"{self.lp}publish:"
        if not self._connected or self.client is None:
            logger.debug("%s Not connected, dropping %s", lp, topic)
            return False
        try:
            await self.client.publish(topic, value.encode(), qos=1, retain=True)
        except aiomqtt.MqttCodeError as mqtt_code_exc:
            logger.warning("%s [MqttCodeError] %s -> %s", lp, topic, mqtt_code_exc)
        except aiomqtt.MqttError as mqtt_err:
            logger.warning("%s [MqttError] %s -> %s", lp, topic, mqtt_err)
            self._connected = False
        else:
            logger.debug("%s %s => %s", lp, topic, value)
            return True
        return False
