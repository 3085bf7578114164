"""Registry of configured receivers.

The registry owns the record set, one device and one reconciler per record,
and the listener devices publish through. Every configuration change ends in
exactly one save of the full record set.
"""

import logging
from dataclasses import replace
from typing import Callable, Optional

from pyavrbridge.config import ConfigRecord, ConfigStore
from pyavrbridge.device import DEVICE_FAMILIES, ReceiverDevice, create_device
from pyavrbridge.exceptions import ConfigurationError, DeviceUnreachable, InvalidInput, ProtocolError
from pyavrbridge.listener import MultiplexingListener, StateListener
from pyavrbridge.protocol import ReceiverProtocol, YncProtocol
from pyavrbridge.reconciler import StateReconciler
from pyavrbridge.storage import ConfigStorage


class Registry:
    """Creates, updates and removes receivers and keeps them polled."""

    def __init__(
        self,
        storage: ConfigStorage,
        listener: Optional[StateListener] = None,
        protocol_factory: Optional[Callable[[str], ReceiverProtocol]] = None,
        start_polling: bool = True,
    ):
        """Initialize registry.

        Args:
            storage: Where the record set is loaded from and saved to
            listener: Receives published state of every device
            protocol_factory: Builds a protocol handle for an address
                (defaults to YncProtocol)
            start_polling: Whether devices get a running reconciler
        """
        self._storage = storage
        self._protocol_factory = protocol_factory or YncProtocol
        self._start_polling = start_polling
        self._logger = logging.getLogger(__name__)

        self._config = ConfigStore()
        self._devices: dict[str, ReceiverDevice] = {}
        self._reconcilers: dict[str, StateReconciler] = {}

        self._multiplex_listener = MultiplexingListener()
        if listener is not None:
            self._multiplex_listener.register_listener(listener)

    # ========== Lifecycle ==========

    async def async_start(self):
        """Load the stored records and bring up a device for each.

        A stored record without an id, or one that breaks an invariant,
        cannot be turned into a device and aborts startup.
        """
        records = await self._storage.load()
        # check every record before any device starts polling
        store = ConfigStore()
        for record in records:
            if not record.id:
                raise ConfigurationError(f"Stored receiver at {record.address or '?'} has no id")
            if record.family not in DEVICE_FAMILIES:
                raise ConfigurationError(f"Stored receiver {record.id} has unknown device family '{record.family}'")
            try:
                record.validate()
                store.add(record)
            except InvalidInput as err:
                raise ConfigurationError(f"Stored receiver {record.id} is invalid: {err}") from err
        for record in store:
            self._config.add(record)
            self._create_device(record)
        self._logger.info(f"Registry started with {len(self._config)} receiver(s)")

    async def async_stop(self):
        """Stop all polling and release all protocol handles."""
        for device_id in list(self._devices):
            await self._release_device(device_id)
        self._logger.info("Registry stopped")

    # ========== Listeners ==========

    def register_listener(self, listener: StateListener):
        self._multiplex_listener.register_listener(listener)

    def unregister_listener(self, listener: StateListener):
        self._multiplex_listener.unregister_listener(listener)

    # ========== Lookup ==========

    def lookup(self, device_id: str) -> Optional[ConfigRecord]:
        return self._config.get(device_id)

    def get_device(self, device_id: str) -> Optional[ReceiverDevice]:
        return self._devices.get(device_id)

    def get_reconciler(self, device_id: str) -> Optional[StateReconciler]:
        return self._reconcilers.get(device_id)

    def records(self) -> list[ConfigRecord]:
        return self._config.records()

    def devices(self) -> list[ReceiverDevice]:
        return list(self._devices.values())

    # ========== Configuration changes ==========

    async def add_or_update(self, candidate: ConfigRecord) -> ConfigRecord:
        """Probe the receiver at ``candidate.address`` and store it.

        The probed serial decides whether this is a new receiver or an
        existing one that is updated in place (its device and reconciler
        are kept). Nothing changes if the probe fails or the merged
        record is invalid.
        """
        protocol = self._protocol_factory(candidate.address)
        try:
            identity = await protocol.probe_identity()
        except (DeviceUnreachable, ProtocolError) as err:
            await protocol.close()
            self._logger.error(f"Could not connect to receiver at {candidate.address} ({err}). Is it online?")
            raise DeviceUnreachable(f"Could not connect to receiver at {candidate.address}: {err}") from err
        self._logger.info(f"Got model {identity.model} serial {identity.serial} at {candidate.address}")

        merged = replace(
            candidate,
            id=identity.serial,
            model=identity.model or candidate.model,
            zone_count=identity.zone_count,
        )
        existing = self._config.get(identity.serial)
        if existing is not None:
            merged.family = existing.family
        try:
            merged.validate()
        except InvalidInput:
            await protocol.close()
            raise

        if existing is not None:
            await protocol.close()
            existing.merge_from(merged)
            device = self._devices.get(existing.id)
            if device is not None:
                device.protocol.address = existing.address
            reconciler = self._reconcilers.get(existing.id)
            if reconciler is not None:
                reconciler.request_refresh()
            self._logger.info(f"Updated receiver {existing.id} at {existing.address}")
            record = existing
        else:
            if not merged.display_name:
                merged.display_name = merged.model or merged.id
            try:
                self._create_device(merged, protocol)
            except ConfigurationError:
                await protocol.close()
                raise
            self._config.add(merged)
            self._multiplex_listener.device_added(merged.id)
            record = merged

        await self.save()
        return record

    async def delete(self, device_id: str):
        """Remove a receiver, stop polling it and release its handle."""
        if device_id not in self._config:
            raise InvalidInput(f"Could not find receiver with id: {device_id}")
        await self._release_device(device_id)
        self._config.remove(device_id)
        self._logger.info(f"Deleted receiver {device_id}")
        self._multiplex_listener.device_removed(device_id)
        await self.save()

    async def select_zone(self, device_id: str, zone: int):
        """Switch the zone a receiver's commands target. Persisted."""
        device = self._require_device(device_id)
        await device.select_zone(zone)

    async def save(self):
        """Persist the full record set."""
        await self._storage.save(self._config.records())

    # ========== Internals ==========

    def _require_device(self, device_id: str) -> ReceiverDevice:
        device = self._devices.get(device_id)
        if device is None:
            raise InvalidInput(f"Could not find receiver with id: {device_id}")
        return device

    def _create_device(self, record: ConfigRecord, protocol: Optional[ReceiverProtocol] = None) -> ReceiverDevice:
        if protocol is None:
            protocol = self._protocol_factory(record.address)
        device = create_device(
            record,
            protocol,
            listener=self._multiplex_listener,
            save_config=self.save,
        )
        self._devices[record.id] = device
        reconciler = StateReconciler(device)
        self._reconcilers[record.id] = reconciler
        if self._start_polling:
            reconciler.start()
        self._logger.info(f"Created device {record.id} ({record.model}) at {record.address}")
        return device

    async def _release_device(self, device_id: str):
        reconciler = self._reconcilers.pop(device_id, None)
        if reconciler is not None:
            await reconciler.stop()
        device = self._devices.pop(device_id, None)
        if device is not None:
            await device.protocol.close()
