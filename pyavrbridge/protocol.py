"""Receiver protocol boundary and the Yamaha Network Control (YNC) client.

YNC is XML over HTTP. Every request is a ``YAMAHA_AV`` document POSTed to
``/YamahaRemoteControl/ctrl``:

    <YAMAHA_AV cmd="PUT"><Main_Zone><Power_Control><Power>On</Power>
    </Power_Control></Main_Zone></YAMAHA_AV>

and every response carries a return code, ``RC="0"`` meaning success:

    <YAMAHA_AV rsp="PUT" RC="0"><Main_Zone>...</Main_Zone></YAMAHA_AV>
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional
from xml.parsers.expat import ExpatError

import aiohttp
import xmltodict

from pyavrbridge.exceptions import DeviceUnreachable, ProtocolError
from pyavrbridge.volume import VOLUME_QUANTUM, step_to_text

CONTROL_PATH = "/YamahaRemoteControl/ctrl"
DEFAULT_TIMEOUT = 5.0  # seconds

# Volume values are sent with one decimal place: <Val>-320</Val><Exp>1</Exp>
VOLUME_EXP = 1
VOLUME_UNIT = "dB"

POWER_ON = "On"
POWER_STANDBY = "Standby"
MUTE_ON = "On"
MUTE_OFF = "Off"

# Zone_2, Zone_3, ... in Feature_Existence
ZONE_FEATURE = re.compile(r"^Zone_(\d+)$")


@dataclass(frozen=True)
class DeviceIdentity:
    """Result of an identity probe."""

    serial: str
    model: str
    zone_count: int = 1


@dataclass(frozen=True)
class ZoneStatus:
    """Native state of one zone. Volume is in device units (dB * 10)."""

    power: bool
    volume: int
    muted: bool
    input: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"ZoneStatus(power={self.power}, volume={self.volume}, "
            f"muted={self.muted}, input={self.input})"
        )


class ReceiverProtocol(ABC):
    """Zone-scoped control operations offered by a receiver.

    Every operation may raise DeviceUnreachable or ProtocolError.
    """

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @address.setter
    @abstractmethod
    def address(self, value: str):
        pass

    @abstractmethod
    async def probe_identity(self) -> DeviceIdentity:
        pass

    @abstractmethod
    async def get_state(self, zone: int) -> ZoneStatus:
        pass

    @abstractmethod
    async def set_power(self, on: bool, zone: int):
        pass

    @abstractmethod
    async def change_volume(self, delta_steps: int, zone: int, step: float = VOLUME_QUANTUM):
        pass

    @abstractmethod
    async def set_volume(self, value: int, zone: int):
        """Set absolute volume in device units (dB * 10)."""
        pass

    @abstractmethod
    async def toggle_mute(self, zone: int) -> bool:
        """Flip mute and return the new muted state."""
        pass

    @abstractmethod
    async def set_input(self, name: str, zone: int):
        pass

    async def close(self):
        pass


def zone_tag(zone: int) -> str:
    """Element name addressing a zone: 1 is the main zone."""
    if zone < 1:
        raise ValueError(f"Invalid zone {zone}, must be 1 or greater")
    return "Main_Zone" if zone == 1 else f"Zone_{zone}"


def build_command(cmd: str, target: str, body: Any) -> str:
    """Render a YAMAHA_AV request document."""
    return xmltodict.unparse({"YAMAHA_AV": {"@cmd": cmd, target: body}})


def parse_response(text: str) -> dict[str, Any]:
    """Parse a response document and check its return code."""
    try:
        document = xmltodict.parse(text)
    except ExpatError as err:
        raise ProtocolError(f"Unparseable response: {err}") from err
    root = document.get("YAMAHA_AV") if isinstance(document, dict) else None
    if not isinstance(root, dict):
        raise ProtocolError("Response is not a YAMAHA_AV document")
    return_code = root.get("@RC")
    if return_code != "0":
        raise ProtocolError(f"Receiver rejected request (RC={return_code})")
    return root


def _find(root: dict[str, Any], *path: str) -> Any:
    node: Any = root
    for key in path:
        if not isinstance(node, dict) or key not in node:
            raise ProtocolError(f"Response is missing {'/'.join(path)}")
        node = node[key]
    return node


def parse_volume(level: dict[str, Any]) -> int:
    """Convert a <Lvl> element to device units (dB * 10)."""
    try:
        value = int(level["Val"])
        exp = int(level.get("Exp") or VOLUME_EXP)
    except (KeyError, TypeError, ValueError) as err:
        raise ProtocolError(f"Malformed volume level {level}") from err
    return int(round(value * 10 ** (VOLUME_EXP - exp)))


def parse_zone_status(root: dict[str, Any], zone: int) -> ZoneStatus:
    """Extract power, volume, mute and input from a Basic_Status response."""
    status = _find(root, zone_tag(zone), "Basic_Status")
    power = _find(status, "Power_Control", "Power")
    volume = _find(status, "Volume", "Lvl")
    mute = _find(status, "Volume", "Mute")
    try:
        input_name = status["Input"]["Input_Sel"]
    except (KeyError, TypeError):
        input_name = None
    return ZoneStatus(
        power=power == POWER_ON,
        volume=parse_volume(volume),
        muted=mute == MUTE_ON,
        input=input_name,
    )


def parse_identity(root: dict[str, Any]) -> DeviceIdentity:
    """Extract serial, model and zone count from a System/Config response."""
    config = _find(root, "System", "Config")
    serial = config.get("System_ID")
    if not serial:
        raise ProtocolError("Receiver did not report a System_ID")
    features = config.get("Feature_Existence") or {}
    zone_count = 1
    for feature, present in features.items():
        if ZONE_FEATURE.match(feature) and present == "1":
            zone_count += 1
    return DeviceIdentity(serial=serial, model=config.get("Model_Name") or "", zone_count=zone_count)


class YncProtocol(ReceiverProtocol):
    """ReceiverProtocol over YNC, using an aiohttp session.

    A session passed in is shared and left open by close(); otherwise one is
    created on first use and closed with the protocol.
    """

    def __init__(self, address: str, session: Optional[aiohttp.ClientSession] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self._logger = logging.getLogger(__name__)
        self._address = address
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def address(self) -> str:
        return self._address

    @address.setter
    def address(self, value: str):
        if value != self._address:
            self._logger.info(f"Receiver moved from {self._address} to {value}")
        self._address = value

    @property
    def url(self) -> str:
        return f"http://{self._address}{CONTROL_PATH}"

    async def close(self):
        if self._owns_session and self._session is not None:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _send(self, request: str) -> dict[str, Any]:
        self._logger.debug(f"SEND {self._address}: {request}")
        try:
            async with self._get_session().post(
                self.url,
                data=request.encode(),
                headers={"Content-Type": "text/xml; charset=UTF-8"},
                timeout=self._timeout,
            ) as response:
                if response.status != 200:
                    raise ProtocolError(f"HTTP {response.status} from {self._address}")
                text = await response.text()
        except UnicodeDecodeError as err:
            raise ProtocolError(f"Undecodable response from {self._address}: {err}") from err
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise DeviceUnreachable(f"Could not reach receiver at {self._address}: {err!r}") from err
        self._logger.debug(f"RECV {self._address}: {text}")
        return parse_response(text)

    async def _get(self, target: str, body: Any) -> dict[str, Any]:
        return await self._send(build_command("GET", target, body))

    async def _put(self, zone: int, body: Any) -> dict[str, Any]:
        return await self._send(build_command("PUT", zone_tag(zone), body))

    # ========== Queries ==========

    async def probe_identity(self) -> DeviceIdentity:
        root = await self._get("System", {"Config": "GetParam"})
        return parse_identity(root)

    async def get_state(self, zone: int) -> ZoneStatus:
        root = await self._get(zone_tag(zone), {"Basic_Status": "GetParam"})
        return parse_zone_status(root, zone)

    # ========== Commands ==========

    async def set_power(self, on: bool, zone: int):
        await self._put(zone, {"Power_Control": {"Power": POWER_ON if on else POWER_STANDBY}})

    async def change_volume(self, delta_steps: int, zone: int, step: float = VOLUME_QUANTUM):
        text = step_to_text(step, up=delta_steps > 0)
        for _ in range(abs(delta_steps)):
            await self._put(zone, {"Volume": {"Lvl": {"Val": text, "Exp": "", "Unit": ""}}})

    async def set_volume(self, value: int, zone: int):
        await self._put(zone, {
            "Volume": {"Lvl": {"Val": str(value), "Exp": str(VOLUME_EXP), "Unit": VOLUME_UNIT}}
        })

    async def toggle_mute(self, zone: int) -> bool:
        current = await self.get_state(zone)
        muted = not current.muted
        await self._put(zone, {"Volume": {"Mute": MUTE_ON if muted else MUTE_OFF}})
        return muted

    async def set_input(self, name: str, zone: int):
        await self._put(zone, {"Input": {"Input_Sel": name}})
