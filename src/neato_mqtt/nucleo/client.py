"""Nucleo messaging client.

Nucleo is Neato's cloud relay to a single robot. Every request is a JSON
message POSTed to ``<base>/<serial>/messages`` and signed with the robot's
secret key::

    Authorization: NEATOAPP hex(hmac_sha256(secret_key, "<serial lower>\\n<date>\\n<body>"))
"""

from __future__ import annotations

import hashlib
import hmac
import itertools
import json
import ssl
from email.utils import formatdate
from typing import Any, cast

import aiohttp

from neato_mqtt.const import NUCLEO_ACCEPT_HEADER, NUCLEO_API_BASE
from neato_mqtt.exceptions import NucleoError
from neato_mqtt.instrumentation import timed_async
from neato_mqtt.logging_abstraction import get_logger

logger = get_logger(__name__)


class NucleoClient:
    """Signed request/response transport to one robot."""

    lp: str = "nucleo:"
    api_timeout: int = 10
    http_session: aiohttp.ClientSession | None = None

    def __init__(
        self,
        serial_number: str,
        secret_key: str,
        *,
        base_url: str = NUCLEO_API_BASE,
        ca_file: str | None = None,
        api_timeout: int = 10,
    ) -> None:
        """Initialize the Nucleo client.

        Args:
            serial_number: Robot serial number
            secret_key: Robot secret key from the BeeHive account API
            base_url: Robots endpoint, ending with ``/``
            ca_file: CA bundle to verify the Nucleo certificate with (system store when None)
            api_timeout: Total request timeout in seconds

        """
        self.serial_number: str = serial_number
        self.secret_key: str = secret_key
        self.base_url: str = base_url
        self.ca_file: str | None = ca_file
        self.api_timeout = api_timeout
        self._req_ids = itertools.count(1)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}{self.serial_number}/messages"

    async def close(self) -> None:
        """Close the aiohttp session if it exists and is not closed."""
        lp = f"{self.lp}close:"
        if self.http_session and not self.http_session.closed:
            logger.debug("%s Closing aiohttp ClientSession", lp)
            await self.http_session.close()
        self.http_session = None

    async def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            logger.debug("%s Creating new aiohttp ClientSession", self.lp)
            self.http_session = aiohttp.ClientSession()
        return self.http_session

    def _ssl(self) -> ssl.SSLContext | bool:
        if self.ca_file:
            return ssl.create_default_context(cafile=self.ca_file)
        return True

    def sign(self, date: str, body: str) -> str:
        """Hex HMAC-SHA256 signature of one request."""
        message = "\n".join((self.serial_number.lower(), date, body))
        return hmac.new(self.secret_key.encode(), message.encode(), hashlib.sha256).hexdigest()

    def build_request(self, command: str, params: dict[str, Any] | None = None) -> tuple[str, dict[str, str]]:
        """Body and headers of a signed Nucleo message."""
        message: dict[str, Any] = {"reqId": str(next(self._req_ids)), "cmd": command}
        if params:
            message["params"] = params
        body = json.dumps(message)
        date = formatdate(usegmt=True)
        headers = {
            "Accept": NUCLEO_ACCEPT_HEADER,
            "Content-Type": "application/json",
            "Date": date,
            "Authorization": f"NEATOAPP {self.sign(date, body)}",
        }
        return body, headers

    @timed_async("nucleo_request")
    async def send_command(self, command: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send one command and return the robot's reply.

        Raises:
            NucleoError: The robot answered with a result other than ``ok``
            aiohttp.ClientError: The request failed at the HTTP level

        """
        lp = f"{self.lp}{command}:"
        session = await self._check_session()
        body, headers = self.build_request(command, params)
        logger.debug("%s Sending %s", lp, body)
        async with session.post(
            self.messages_url,
            data=body,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self.api_timeout),
            ssl=self._ssl(),
        ) as resp:
            resp.raise_for_status()
            reply: object = await resp.json(content_type=None)

        if not isinstance(reply, dict):
            raise NucleoError(command, None, f"Robot command '{command}' returned a non-object reply")
        reply_dict = cast("dict[str, Any]", reply)
        result = reply_dict.get("result")
        if result != "ok":
            logger.warning("%s Robot replied result=%s", lp, result)
            raise NucleoError(command, result)
        return reply_dict
