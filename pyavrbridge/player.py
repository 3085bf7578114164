"""Generic media player control surface."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Optional

from pyavrbridge.listener import StateListener


@dataclass(frozen=True)
class PublishedState:
    """Snapshot of what a media player last reported. Replaced, never mutated."""

    power: bool = False
    volume_level: float = 0.0
    muted: bool = False
    input: Optional[str] = None
    zone: int = 1


class MediaPlayer(ABC):
    """Capability contract every controllable device implements.

    Holds the published state snapshot and forwards changes to a listener.
    Subclasses translate the operations to their native protocol.
    """

    def __init__(self, device_id: str, listener: Optional[StateListener] = None, zone: int = 1):
        self._device_id = device_id
        self._listener = listener
        self._state = PublishedState(zone=zone)
        self._available = False
        self._reported: set[str] = set()
        self._logger = logging.getLogger(__name__)

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def state(self) -> PublishedState:
        """Most recently published state."""
        return self._state

    @property
    def available(self) -> bool:
        """Whether the last poll of the device succeeded."""
        return self._available

    def is_on(self) -> bool:
        """Last published power state. Never touches the network."""
        return self._state.power

    # ========== Capabilities ==========

    @abstractmethod
    async def power_on(self):
        pass

    @abstractmethod
    async def power_off(self):
        pass

    @abstractmethod
    async def toggle_power(self):
        pass

    @abstractmethod
    async def volume_up(self):
        pass

    @abstractmethod
    async def volume_down(self):
        pass

    @abstractmethod
    async def set_volume(self, level: float):
        pass

    @abstractmethod
    async def toggle_mute(self):
        pass

    @abstractmethod
    async def select_input(self, input_name: str):
        pass

    @abstractmethod
    async def select_zone(self, zone: int):
        pass

    @abstractmethod
    async def async_update(self):
        """Read the true device state and publish it."""
        pass

    # ========== Publishing ==========

    def _publish(self, **changes):
        """Replace the state snapshot and report the fields that changed.

        A field is reported the first time it is published and afterwards
        only when its value differs from the previous snapshot.
        """
        previous = self._state
        current = replace(previous, **changes)
        self._state = current
        if self._listener is None:
            return
        if self._should_report(changes, previous, current, "power"):
            self._listener.power_changed(self._device_id, current.power)
        level_changed = self._should_report(changes, previous, current, "volume_level")
        mute_changed = self._should_report(changes, previous, current, "muted")
        if level_changed or mute_changed:
            self._listener.volume_changed(self._device_id, current.volume_level, current.muted)
        if self._should_report(changes, previous, current, "input"):
            self._listener.input_changed(self._device_id, current.input)
        if self._should_report(changes, previous, current, "zone"):
            self._listener.zone_changed(self._device_id, current.zone)

    def _should_report(self, changes, previous, current, field) -> bool:
        if field not in changes:
            return False
        if field not in self._reported:
            self._reported.add(field)
            return True
        return getattr(previous, field) != getattr(current, field)

    def _set_available(self, available: bool):
        if available == self._available:
            return
        self._available = available
        if self._listener is not None:
            self._listener.availability_changed(self._device_id, available)
