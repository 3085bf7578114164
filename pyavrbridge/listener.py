from abc import ABC, abstractmethod
from typing import List, Optional
import logging


class StateListener(ABC):

    @abstractmethod
    def power_changed(self, device_id: str, power: bool):
        pass

    @abstractmethod
    def volume_changed(self, device_id: str, level: float, muted: bool):
        """Called when volume or mute changes. Level is normalized to 0-1."""
        pass

    def input_changed(self, device_id: str, input_name: Optional[str]):
        # By default, do nothing but can be overwritten to be notified of these messages.
        pass

    def zone_changed(self, device_id: str, zone: int):
        """Called when the zone a device controls is switched."""
        pass

    def availability_changed(self, device_id: str, available: bool):
        """Called when polling a device starts or stops succeeding."""
        pass

    def device_added(self, device_id: str):
        pass

    def device_removed(self, device_id: str):
        pass


class MultiplexingListener(StateListener):

    _listeners: List[StateListener]

    def __init__(self):
        self._listeners = []

    def power_changed(self, device_id: str, power: bool):
        for listener in self._listeners:
            listener.power_changed(device_id, power)

    def volume_changed(self, device_id: str, level: float, muted: bool):
        for listener in self._listeners:
            listener.volume_changed(device_id, level, muted)

    def input_changed(self, device_id: str, input_name: Optional[str]):
        for listener in self._listeners:
            listener.input_changed(device_id, input_name)

    def zone_changed(self, device_id: str, zone: int):
        for listener in self._listeners:
            listener.zone_changed(device_id, zone)

    def availability_changed(self, device_id: str, available: bool):
        for listener in self._listeners:
            listener.availability_changed(device_id, available)

    def device_added(self, device_id: str):
        for listener in self._listeners:
            listener.device_added(device_id)

    def device_removed(self, device_id: str):
        for listener in self._listeners:
            listener.device_removed(device_id)

    def register_listener(self, listener: StateListener):
        self._listeners.append(listener)

    def unregister_listener(self, listener: StateListener):
        if listener in self._listeners:
            self._listeners.remove(listener)
        else:
            logging.info("Listener isn't registered")


class LoggingListener(StateListener):

    def __init__(self, logger = logging):
        self.logger = logger

    def power_changed(self, device_id: str, power: bool):
        self.logger.info(f"{device_id} power: {'on' if power else 'standby'}")

    def volume_changed(self, device_id: str, level: float, muted: bool):
        self.logger.info(f"{device_id} volume: {level:.3f}{' (muted)' if muted else ''}")

    def input_changed(self, device_id: str, input_name: Optional[str]):
        self.logger.info(f"{device_id} input: {input_name}")

    def zone_changed(self, device_id: str, zone: int):
        self.logger.info(f"{device_id} now controlling zone {zone}")

    def availability_changed(self, device_id: str, available: bool):
        self.logger.info(f"{device_id} is {'online' if available else 'offline'}")

    def device_added(self, device_id: str):
        self.logger.info(f"Device {device_id} added")

    def device_removed(self, device_id: str):
        self.logger.info(f"Device {device_id} removed")
