"""BeeHive account API client.

Only used when the robot's serial number or secret key is not configured:
log in with the account e-mail and password and list the robots (with their
secret keys) so they can be copied into the config.
"""

from __future__ import annotations

import secrets
from typing import Any, cast

import aiohttp
from pydantic import BaseModel, ConfigDict

from neato_mqtt.const import BEEHIVE_API_BASE, NUCLEO_ACCEPT_HEADER
from neato_mqtt.exceptions import BeeHiveAuthenticationError
from neato_mqtt.logging_abstraction import get_logger

logger = get_logger(__name__)


class BeeHiveRobot(BaseModel):
    """A robot registered to the account."""

    model_config = ConfigDict(extra="ignore")

    serial: str
    name: str | None = None
    model: str | None = None
    secret_key: str


class BeeHiveClient:
    lp: str = "beehive:"
    api_timeout: int = 10
    http_session: aiohttp.ClientSession | None = None
    access_token: str | None = None

    def __init__(self, email: str, password: str, *, base_url: str = BEEHIVE_API_BASE) -> None:
        self.email: str = email
        self.password: str = password
        self.base_url: str = base_url

    async def close(self) -> None:
        if self.http_session and not self.http_session.closed:
            await self.http_session.close()
        self.http_session = None

    async def _check_session(self) -> aiohttp.ClientSession:
        if not self.http_session or self.http_session.closed:
            self.http_session = aiohttp.ClientSession()
        return self.http_session

    async def login(self) -> str:
        """Log in and return the session access token.

        Raises:
            BeeHiveAuthenticationError: Wrong credentials or no token in the reply

        """
        lp = f"{self.lp}login:"
        session = await self._check_session()
        auth_data = {
            "platform": "ios",
            "email": self.email,
            "password": self.password,
            "token": secrets.token_hex(32),
        }
        try:
            async with session.post(
                f"{self.base_url}sessions",
                json=auth_data,
                headers={"Accept": NUCLEO_ACCEPT_HEADER},
                timeout=aiohttp.ClientTimeout(total=self.api_timeout),
            ) as resp:
                resp.raise_for_status()
                reply = cast("dict[str, Any]", await resp.json(content_type=None))
        except aiohttp.ClientResponseError as e:
            logger.exception("%s Login failed for %s", lp, self.email)
            msg = f"BeeHive login failed with HTTP {e.status}"
            raise BeeHiveAuthenticationError(msg) from e

        access_token = reply.get("access_token")
        if not access_token:
            msg = "BeeHive login reply has no access_token"
            raise BeeHiveAuthenticationError(msg)
        self.access_token = str(access_token)
        return self.access_token

    async def get_robots(self) -> list[BeeHiveRobot]:
        """Robots registered to the account, logging in first if needed."""
        session = await self._check_session()
        token = self.access_token or await self.login()
        async with session.get(
            f"{self.base_url}users/me/robots",
            headers={"Accept": NUCLEO_ACCEPT_HEADER, "Authorization": f"Token token={token}"},
            timeout=aiohttp.ClientTimeout(total=self.api_timeout),
        ) as resp:
            resp.raise_for_status()
            robots = cast("list[dict[str, Any]]", await resp.json(content_type=None))
        return [BeeHiveRobot.model_validate(robot) for robot in robots]
