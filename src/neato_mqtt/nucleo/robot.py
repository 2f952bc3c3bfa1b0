"""Robot operations on top of the Nucleo transport."""

from __future__ import annotations

from pydantic import ValidationError

from neato_mqtt.exceptions import NucleoError
from neato_mqtt.logging_abstraction import get_logger
from neato_mqtt.nucleo.client import NucleoClient
from neato_mqtt.structs import RobotState, StartCleaningParameters

logger = get_logger(__name__)


class Robot:
    """One Neato robot, implementing :class:`neato_mqtt.structs.RobotProtocol`."""

    lp: str = "robot:"

    def __init__(self, client: NucleoClient) -> None:
        self.client: NucleoClient = client

    async def get_robot_state(self) -> RobotState:
        reply = await self.client.send_command("getRobotState")
        try:
            return RobotState.model_validate(reply)
        except ValidationError as e:
            raise NucleoError("getRobotState", reply.get("result"), f"Unexpected robot state reply: {e}") from e

    async def _command(self, command: str, params: dict[str, int] | None = None) -> None:
        logger.info("%s %s", self.lp, command, extra={"params": params} if params else None)
        _ = await self.client.send_command(command, params)

    async def send_to_base(self) -> None:
        await self._command("sendToBase")

    async def find_me(self) -> None:
        await self._command("findMe")

    async def start_cleaning(self, params: StartCleaningParameters) -> None:
        await self._command("startCleaning", params.to_nucleo_params())

    async def stop_cleaning(self) -> None:
        await self._command("stopCleaning")

    async def pause_cleaning(self) -> None:
        await self._command("pauseCleaning")

    async def resume_cleaning(self) -> None:
        await self._command("resumeCleaning")

    async def start_persistent_map_exploration(self) -> None:
        await self._command("startPersistentMapExploration")

    async def enable_schedule(self) -> None:
        await self._command("enableSchedule")

    async def disable_schedule(self) -> None:
        await self._command("disableSchedule")

    async def dismiss_current_alert(self) -> None:
        await self._command("dismissCurrentAlert")

    async def close(self) -> None:
        await self.client.close()
