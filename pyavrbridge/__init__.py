"""pyavrbridge Python Package

Python library bridging Yamaha network-controlled AV receivers to a
generic media player control surface.
"""

from pyavrbridge.config import ConfigRecord, ConfigStore
from pyavrbridge.device import ReceiverDevice, RxvReceiver
from pyavrbridge.exceptions import (
    AvrError,
    ConfigurationError,
    DeviceUnreachable,
    InvalidInput,
    ProtocolError,
)
from pyavrbridge.listener import LoggingListener, MultiplexingListener, StateListener
from pyavrbridge.player import MediaPlayer, PublishedState
from pyavrbridge.protocol import ReceiverProtocol, YncProtocol
from pyavrbridge.reconciler import StateReconciler
from pyavrbridge.registry import Registry
from pyavrbridge.storage import ConfigStorage, JsonConfigStorage

__all__ = [
    "AvrError",
    "ConfigRecord",
    "ConfigStorage",
    "ConfigStore",
    "ConfigurationError",
    "DeviceUnreachable",
    "InvalidInput",
    "JsonConfigStorage",
    "LoggingListener",
    "MediaPlayer",
    "MultiplexingListener",
    "ProtocolError",
    "PublishedState",
    "ReceiverDevice",
    "ReceiverProtocol",
    "Registry",
    "RxvReceiver",
    "StateListener",
    "StateReconciler",
    "YncProtocol",
]
