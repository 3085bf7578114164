"""Receiver devices: the media player contract translated to a receiver protocol."""

from typing import Awaitable, Callable, Optional

from pyavrbridge.config import ConfigRecord
from pyavrbridge.exceptions import ConfigurationError, InvalidInput
from pyavrbridge.listener import StateListener
from pyavrbridge.player import MediaPlayer
from pyavrbridge.protocol import ReceiverProtocol
from pyavrbridge.volume import clamp_level, to_device, to_normalized

MANUFACTURER = "Yamaha"


class ReceiverDevice(MediaPlayer):
    """A configured multi-zone receiver.

    Commands target ``record.active_zone`` and the record is shared with the
    registry, so zone, ceiling, step and interval edits apply on the next
    call. Published state changes only after the protocol call succeeds.
    """

    # Inputs accepted by select_input, set per family
    INPUTS: tuple[str, ...] = ()

    def __init__(
        self,
        record: ConfigRecord,
        protocol: ReceiverProtocol,
        listener: Optional[StateListener] = None,
        save_config: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        if not record.id:
            raise ConfigurationError(f"Receiver at {record.address} has no id")
        super().__init__(record.id, listener=listener, zone=record.active_zone)
        self._record = record
        self._protocol = protocol
        self._save_config = save_config
        self._refresh_callback: Optional[Callable[[], None]] = None

    @property
    def record(self) -> ConfigRecord:
        return self._record

    @property
    def protocol(self) -> ReceiverProtocol:
        return self._protocol

    @property
    def input_list(self) -> list[str]:
        return list(self.INPUTS)

    @property
    def current_input(self) -> Optional[str]:
        """Input reported by the last poll."""
        return self._state.input

    @property
    def device_info(self) -> dict[str, str]:
        return {
            "manufacturer": MANUFACTURER,
            "model": self._record.model,
            "serial": self._record.id,
            "name": self._record.name,
        }

    def set_refresh_callback(self, callback: Optional[Callable[[], None]]):
        """Register a callable that schedules an early poll."""
        self._refresh_callback = callback

    # ========== Power ==========

    async def power_on(self):
        await self._set_power(True)

    async def power_off(self):
        await self._set_power(False)

    async def toggle_power(self):
        await self._set_power(not self.is_on())

    async def _set_power(self, on: bool):
        zone = self._record.active_zone
        self._logger.info(f"Power request - {self.device_id} zone {zone}: {'on' if on else 'standby'}")
        await self._protocol.set_power(on, zone)
        self._publish(power=on)

    # ========== Volume ==========

    async def volume_up(self):
        await self._step_volume(1)

    async def volume_down(self):
        await self._step_volume(-1)

    async def _step_volume(self, delta: int):
        zone = self._record.active_zone
        await self._protocol.change_volume(delta, zone, step=self._record.volume_step)
        # the receiver clamps at its own limits, so read back the real value
        status = await self._protocol.get_state(zone)
        self._publish(
            volume_level=to_normalized(status.volume, self._record.volume_ceiling),
            muted=status.muted,
        )

    async def set_volume(self, level: float):
        try:
            level = clamp_level(float(level))
        except (TypeError, ValueError) as err:
            raise InvalidInput(f"Invalid volume level {level!r}") from err
        zone = self._record.active_zone
        value = to_device(level, self._record.volume_ceiling)
        self._logger.info(f"Volume request - {self.device_id} zone {zone}: {level:.3f} ({value / 10:.1f} dB)")
        await self._protocol.set_volume(value, zone)
        self._publish(volume_level=level)

    async def toggle_mute(self):
        muted = await self._protocol.toggle_mute(self._record.active_zone)
        self._publish(muted=muted)

    # ========== Input and zone ==========

    async def select_input(self, input_name: str):
        if input_name not in self.INPUTS:
            raise InvalidInput(f"Unknown input '{input_name}', must be one of {', '.join(self.INPUTS)}")
        zone = self._record.active_zone
        self._logger.info(f"Input request - {self.device_id} zone {zone}: {input_name}")
        # no publish: the next poll reports the input
        await self._protocol.set_input(input_name, zone)

    async def select_zone(self, zone: int):
        if isinstance(zone, bool) or not isinstance(zone, int) or not (1 <= zone <= self._record.zone_count):
            raise InvalidInput(f"Invalid zone {zone}, must be 1-{self._record.zone_count}")
        if zone == self._record.active_zone:
            return
        self._record.active_zone = zone
        self._logger.info(f"{self.device_id} now controlling zone {zone}")
        self._publish(zone=zone)
        if self._refresh_callback is not None:
            self._refresh_callback()
        if self._save_config is not None:
            await self._save_config()

    # ========== Reconciliation ==========

    async def async_update(self):
        zone = self._record.active_zone
        try:
            status = await self._protocol.get_state(zone)
        except Exception:
            self._set_available(False)
            raise
        if zone != self._record.active_zone:
            # zone switched while polling; this status is stale
            self._logger.debug(f"Discarding poll of zone {zone} for {self.device_id}")
            return
        self._publish(
            power=status.power,
            volume_level=to_normalized(status.volume, self._record.volume_ceiling),
            muted=status.muted,
            input=status.input,
            zone=zone,
        )
        self._set_available(True)


class RxvReceiver(ReceiverDevice):
    """RX-V series receivers."""

    INPUTS = (
        "NET RADIO",
        "TUNER",
        "AUDIO1",
        "AUDIO2",
        "USB",
        "HDMI1",
        "HDMI2",
        "HDMI3",
        "HDMI4",
        "AV1",
        "AV2",
        "AV3",
        "AV4",
        "SERVER",
    )


DEVICE_FAMILIES: dict[str, type[ReceiverDevice]] = {
    "yamaha-avr": RxvReceiver,
}


def create_device(
    record: ConfigRecord,
    protocol: ReceiverProtocol,
    listener: Optional[StateListener] = None,
    save_config: Optional[Callable[[], Awaitable[None]]] = None,
) -> ReceiverDevice:
    """Build the device class registered for the record's family."""
    device_class = DEVICE_FAMILIES.get(record.family)
    if device_class is None:
        raise ConfigurationError(f"Unknown device family '{record.family}' for {record.id}")
    return device_class(record, protocol, listener=listener, save_config=save_config)
