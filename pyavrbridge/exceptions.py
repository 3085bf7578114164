"""Exceptions for pyavrbridge."""


class AvrError(Exception):
    """Base exception for receiver control."""


class DeviceUnreachable(AvrError):
    """Receiver could not be reached (network error or timeout)."""


class ProtocolError(AvrError):
    """Receiver answered but rejected or garbled the request."""


class InvalidInput(AvrError, ValueError):
    """Zone out of range, unknown input name or malformed numeric field."""


class ConfigurationError(AvrError):
    """Stored configuration cannot be used to build a device."""
