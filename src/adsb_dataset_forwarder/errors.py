"""Exceptions raised by the forwarder pipeline."""


class ForwarderError(Exception):
    """Base error for this package."""


class ConfigurationError(ForwarderError):
    """Raised when required configuration is missing or invalid at startup."""


class TransportReadError(ForwarderError):
    """Raised when the feed connection cannot be opened or fails mid-read."""


class SinkDeliveryError(ForwarderError):
    """Raised by a sink when a payload could not be delivered."""
