"""Tests for the receiver registry."""

import pytest
import pytest_asyncio

from fakes import FakeProtocol, MemoryStorage, RecordingListener, make_record
from pyavrbridge.config import ConfigRecord
from pyavrbridge.exceptions import ConfigurationError, DeviceUnreachable, InvalidInput, ProtocolError
from pyavrbridge.registry import Registry


class ProtocolFactory:
    """Hands out a FakeProtocol per address; ``receivers`` maps address to serial."""

    def __init__(self):
        self.receivers = {"192.168.1.50": "0B587073", "192.168.1.77": "0B587073", "10.0.0.9": "0C112233"}
        self.created = []
        self.fail_with = None

    def __call__(self, address):
        protocol = FakeProtocol(address=address, serial=self.receivers.get(address, "UNKNOWN"))
        if self.fail_with is not None:
            protocol.fail_with = self.fail_with
        self.created.append(protocol)
        return protocol


@pytest.fixture
def factory():
    return ProtocolFactory()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest_asyncio.fixture
async def registry(storage, factory, listener):
    registry = Registry(storage, listener=listener, protocol_factory=factory)
    await registry.async_start()
    yield registry
    await registry.async_stop()


def candidate(address="192.168.1.50", **overrides):
    return ConfigRecord(address=address, **overrides)


@pytest.mark.asyncio
async def test_add_creates_record_device_and_reconciler(registry, storage, listener):
    record = await registry.add_or_update(candidate(display_name="Lounge", volume_step=2.0))

    assert record.id == "0B587073"
    assert record.model == "RX-V671"
    assert record.zone_count == 2
    assert record.volume_step == 2.0
    assert registry.lookup("0B587073") is record
    assert registry.get_device("0B587073").record is record
    assert registry.get_reconciler("0B587073").running
    assert storage.save_count == 1
    assert storage.last[0]["display_name"] == "Lounge"
    assert ("added", "0B587073") in listener.events


@pytest.mark.asyncio
async def test_add_defaults_name_to_model(registry):
    record = await registry.add_or_update(candidate())
    assert record.display_name == "RX-V671"


@pytest.mark.asyncio
async def test_add_reuses_probe_handle(registry, factory):
    await registry.add_or_update(candidate())
    assert len(factory.created) == 1
    assert registry.get_device("0B587073").protocol is factory.created[0]
    assert not factory.created[0].closed


@pytest.mark.asyncio
async def test_same_serial_new_address_updates_in_place(registry, storage, factory):
    first = await registry.add_or_update(candidate(display_name="Lounge"))
    device = registry.get_device("0B587073")
    reconciler = registry.get_reconciler("0B587073")

    second = await registry.add_or_update(candidate("192.168.1.77", poll_interval_seconds=10))

    assert second is first
    assert len(registry.records()) == 1
    assert first.address == "192.168.1.77"
    assert first.display_name == "Lounge"
    assert first.poll_interval_seconds == 10
    assert registry.get_device("0B587073") is device
    assert registry.get_reconciler("0B587073") is reconciler
    assert device.protocol.address == "192.168.1.77"
    # the probe for the update is not kept
    assert factory.created[1].closed
    assert storage.save_count == 2
    assert [item["address"] for item in storage.last] == ["192.168.1.77"]


@pytest.mark.asyncio
async def test_two_receivers(registry):
    await registry.add_or_update(candidate())
    await registry.add_or_update(candidate("10.0.0.9"))
    assert sorted(record.id for record in registry.records()) == ["0B587073", "0C112233"]
    assert len(registry.devices()) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [DeviceUnreachable("timed out"), ProtocolError("RC=1")])
async def test_failed_probe_changes_nothing(registry, storage, factory, listener, error):
    factory.fail_with = error

    with pytest.raises(DeviceUnreachable):
        await registry.add_or_update(candidate())

    assert registry.records() == []
    assert registry.devices() == []
    assert storage.save_count == 0
    assert factory.created[0].closed
    assert listener.events == []


@pytest.mark.asyncio
async def test_invalid_candidate_changes_nothing(registry, storage, factory):
    # probed receiver has two zones
    with pytest.raises(InvalidInput):
        await registry.add_or_update(candidate(active_zone=3))

    assert registry.records() == []
    assert storage.save_count == 0
    assert factory.created[0].closed


@pytest.mark.asyncio
async def test_invalid_update_leaves_existing_record(registry, storage):
    record = await registry.add_or_update(candidate(volume_step=1.0))

    with pytest.raises(InvalidInput):
        await registry.add_or_update(candidate("192.168.1.77", volume_step=3.0))

    assert record.address == "192.168.1.50"
    assert record.volume_step == 1.0
    assert storage.save_count == 1


@pytest.mark.asyncio
async def test_delete(registry, storage, listener):
    await registry.add_or_update(candidate())
    device = registry.get_device("0B587073")
    reconciler = registry.get_reconciler("0B587073")

    await registry.delete("0B587073")

    assert registry.records() == []
    assert registry.get_device("0B587073") is None
    assert not reconciler.running
    assert device.protocol.closed
    assert storage.last == []
    assert storage.save_count == 2
    assert listener.events[-1] == ("removed", "0B587073")


@pytest.mark.asyncio
async def test_delete_unknown_id(registry, storage):
    with pytest.raises(InvalidInput):
        await registry.delete("NOPE")
    assert storage.save_count == 0


@pytest.mark.asyncio
async def test_select_zone_is_persisted(registry, storage):
    await registry.add_or_update(candidate())

    await registry.select_zone("0B587073", 2)

    assert registry.lookup("0B587073").active_zone == 2
    assert storage.last[0]["active_zone"] == 2
    assert storage.save_count == 2


@pytest.mark.asyncio
async def test_select_zone_unknown_device(registry):
    with pytest.raises(InvalidInput):
        await registry.select_zone("NOPE", 1)


@pytest.mark.asyncio
async def test_start_loads_stored_records(factory, listener):
    storage = MemoryStorage([make_record(), make_record(id="0C112233", address="10.0.0.9")])
    registry = Registry(storage, listener=listener, protocol_factory=factory, start_polling=False)
    await registry.async_start()
    try:
        assert len(registry.records()) == 2
        assert [protocol.address for protocol in factory.created] == ["192.168.1.50", "10.0.0.9"]
        assert not registry.get_reconciler("0B587073").running
        assert storage.save_count == 0
    finally:
        await registry.async_stop()


@pytest.mark.asyncio
@pytest.mark.parametrize("stored", [
    ConfigRecord(address="192.168.1.50"),
    make_record(volume_step=3.0),
    make_record(active_zone=5),
])
async def test_start_rejects_unusable_records(factory, stored):
    registry = Registry(MemoryStorage([stored]), protocol_factory=factory, start_polling=False)
    with pytest.raises(ConfigurationError):
        await registry.async_start()


@pytest.mark.asyncio
async def test_bad_later_record_starts_nothing(factory):
    storage = MemoryStorage([make_record(), make_record(id="0C112233", address="10.0.0.9", active_zone=5)])
    registry = Registry(storage, protocol_factory=factory)

    with pytest.raises(ConfigurationError):
        await registry.async_start()

    assert registry.get_reconciler("0B587073") is None
    assert registry.devices() == []
    assert registry.records() == []
    assert factory.created == []


@pytest.mark.asyncio
async def test_duplicate_stored_ids_rejected(factory):
    storage = MemoryStorage([make_record(), make_record(address="10.0.0.9")])
    registry = Registry(storage, protocol_factory=factory)

    with pytest.raises(ConfigurationError):
        await registry.async_start()

    assert factory.created == []


@pytest.mark.asyncio
async def test_unknown_family_starts_nothing(factory):
    storage = MemoryStorage([make_record(), make_record(id="0C112233", address="10.0.0.9", family="denon-avr")])
    registry = Registry(storage, protocol_factory=factory)

    with pytest.raises(ConfigurationError):
        await registry.async_start()

    assert registry.get_reconciler("0B587073") is None
    assert registry.devices() == []
    assert factory.created == []


@pytest.mark.asyncio
async def test_stop_releases_everything(storage, factory):
    registry = Registry(storage, protocol_factory=factory)
    await registry.async_start()
    await registry.add_or_update(candidate())
    reconciler = registry.get_reconciler("0B587073")

    await registry.async_stop()

    assert not reconciler.running
    assert factory.created[0].closed
    assert registry.devices() == []
    # configuration survives a stop
    assert len(registry.records()) == 1


@pytest.mark.asyncio
async def test_listener_registration(registry):
    extra = RecordingListener()
    registry.register_listener(extra)
    await registry.add_or_update(candidate())
    registry.unregister_listener(extra)
    await registry.delete("0B587073")

    assert ("added", "0B587073") in extra.events
    assert ("removed", "0B587073") not in extra.events
