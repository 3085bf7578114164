"""Tests for config records and the record store."""

import math

import pytest

from fakes import make_record
from pyavrbridge.config import DEFAULT_POLL_INTERVAL, ConfigRecord, ConfigStore
from pyavrbridge.exceptions import InvalidInput


def test_defaults():
    record = ConfigRecord(id="ABC", address="10.0.0.2")
    assert record.active_zone == 1
    assert record.zone_count == 1
    assert record.poll_interval_seconds == 5
    assert record.family == "yamaha-avr"
    record.validate()


def test_name_falls_back_to_model_then_id():
    assert ConfigRecord(id="ABC", model="RX-V671").name == "RX-V671"
    assert ConfigRecord(id="ABC").name == "ABC"
    assert ConfigRecord(id="ABC", display_name="Lounge").name == "Lounge"


@pytest.mark.parametrize("overrides", [
    {"zone_count": 0},
    {"active_zone": 0},
    {"active_zone": 3},
    {"volume_ceiling": -80.5},
    {"volume_ceiling": 20.0},
    {"volume_ceiling": math.nan},
    {"volume_ceiling": math.inf},
    {"volume_ceiling": -math.inf},
    {"volume_step": 3.0},
    {"poll_interval_seconds": 0},
])
def test_validate_rejects_broken_invariants(overrides):
    with pytest.raises(InvalidInput):
        make_record(**overrides).validate()


def test_dict_round_trip():
    record = make_record(active_zone=2, volume_ceiling=-10.0)
    assert ConfigRecord.from_dict(record.to_dict()) == record


def test_from_dict_accepts_string_numbers():
    record = ConfigRecord.from_dict({
        "id": "0B587073",
        "address": "192.168.1.50",
        "zone_count": "2",
        "active_zone": "2",
        "volume_ceiling": "-5.5",
        "volume_step": "1.0",
        "poll_interval_seconds": "10",
    })
    assert record.zone_count == 2
    assert record.active_zone == 2
    assert record.volume_ceiling == -5.5
    assert record.volume_step == 1.0
    assert record.poll_interval_seconds == 10


def test_from_dict_unset_interval_uses_default():
    record = ConfigRecord.from_dict({"id": "X", "poll_interval_seconds": 0})
    assert record.poll_interval_seconds == DEFAULT_POLL_INTERVAL


def test_from_dict_rejects_malformed_numbers():
    with pytest.raises(InvalidInput):
        ConfigRecord.from_dict({"id": "X", "volume_ceiling": "loud"})


@pytest.mark.parametrize("ceiling", ["nan", "inf", "-inf"])
def test_non_finite_stored_ceiling_fails_validation(ceiling):
    record = ConfigRecord.from_dict({"id": "X", "volume_ceiling": ceiling})
    with pytest.raises(InvalidInput):
        record.validate()


def test_merge_keeps_identity_and_blank_name():
    record = make_record()
    update = make_record(
        id="SOMETHING-ELSE",
        address="192.168.1.99",
        display_name="",
        active_zone=2,
        volume_ceiling=-6.0,
        poll_interval_seconds=30,
    )
    record.merge_from(update)
    assert record.id == "0B587073"
    assert record.display_name == "Lounge"
    assert record.address == "192.168.1.99"
    assert record.active_zone == 2
    assert record.volume_ceiling == -6.0
    assert record.poll_interval_seconds == 30


def test_store_is_keyed_by_id():
    first = make_record()
    second = make_record(id="1C000001", address="192.168.1.51")
    store = ConfigStore([first, second])
    assert len(store) == 2
    assert "0B587073" in store
    assert store.get("1C000001") is second
    assert store.get("missing") is None
    assert list(store) == [first, second]


def test_store_rejects_duplicate_ids():
    store = ConfigStore([make_record()])
    with pytest.raises(InvalidInput):
        store.add(make_record(address="192.168.1.99"))


def test_store_remove():
    store = ConfigStore([make_record()])
    removed = store.remove("0B587073")
    assert removed.address == "192.168.1.50"
    assert store.remove("0B587073") is None
    assert store.records() == []
