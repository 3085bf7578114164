import logging

from fakes import RecordingListener
from pyavrbridge.listener import LoggingListener, MultiplexingListener


def test_multiplexing_listener_fans_out():
    first = RecordingListener()
    second = RecordingListener()
    multiplex = MultiplexingListener()
    multiplex.register_listener(first)
    multiplex.register_listener(second)

    multiplex.power_changed("0B587073", True)
    multiplex.volume_changed("0B587073", 0.25, False)
    multiplex.zone_changed("0B587073", 2)

    expected = [
        ("power", "0B587073", True),
        ("volume", "0B587073", 0.25, False),
        ("zone", "0B587073", 2),
    ]
    assert first.events == expected
    assert second.events == expected


def test_unregistered_listener_gets_nothing(caplog):
    listener = RecordingListener()
    multiplex = MultiplexingListener()
    multiplex.register_listener(listener)
    multiplex.unregister_listener(listener)

    multiplex.device_added("0B587073")
    with caplog.at_level(logging.INFO):
        multiplex.unregister_listener(listener)

    assert listener.events == []
    assert "Listener isn't registered" in caplog.text


def test_logging_listener(caplog):
    listener = LoggingListener(logging.getLogger("test.listener"))
    with caplog.at_level(logging.INFO, logger="test.listener"):
        listener.power_changed("0B587073", False)
        listener.volume_changed("0B587073", 0.5, True)
        listener.availability_changed("0B587073", False)

    assert "0B587073 power: standby" in caplog.text
    assert "0B587073 volume: 0.500 (muted)" in caplog.text
    assert "0B587073 is offline" in caplog.text
