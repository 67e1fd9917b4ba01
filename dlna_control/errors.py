"""
Error taxonomy for discovery and control.

All errors derive from DLNAControlError so callers can catch the whole family.
Nothing in this package retries automatically; errors are reported to the
caller, who decides whether to re-issue a command.
"""

from typing import Optional


class DLNAControlError(Exception):
    """Base class for all dlna-control errors."""


class TransportError(DLNAControlError):
    """A socket or HTTP connection failed (bind, join, send, connect)."""


class MalformedDatagramError(DLNAControlError):
    """An SSDP datagram could not be decoded. Dropped by the discovery loop."""


class SessionStateError(DLNAControlError):
    """A discovery session operation was called in the wrong state."""


class DeviceNotFoundError(DLNAControlError):
    """No device with the given id is in the registry."""

    def __init__(self, device_id: str):
        super().__init__(f"Unknown device: {device_id}")
        self.device_id = device_id


class DescriptionError(DLNAControlError):
    """Base class for device description failures."""


class DescriptionFetchError(DescriptionError):
    """The description document could not be downloaded."""


class DescriptionParseError(DescriptionError):
    """The description document is not a usable UPnP device description."""


class CapabilityMissingError(DLNAControlError):
    """The device does not offer the service an action needs."""

    def __init__(self, device_id: str, service_name: str, reason: str = "service not offered"):
        super().__init__(f"Device {device_id} cannot handle {service_name}: {reason}")
        self.device_id = device_id
        self.service_name = service_name


class ActionFault(DLNAControlError):
    """The device rejected a SOAP action.

    Attributes:
        code: UPnP error code (or HTTP status) as reported by the device, if any
        description: Device-provided error description
    """

    def __init__(self, action: str, code: Optional[str], description: str):
        super().__init__(f"{action} failed ({code or 'no code'}): {description}")
        self.action = action
        self.code = code
        self.description = description
