"""
dlna-control - Discover and control DLNA/UPnP media renderers on the LAN.

This package finds MediaRenderer devices with SSDP multicast discovery, keeps
them in a registry, resolves their device descriptions and drives playback and
volume through the AVTransport and RenderingControl SOAP services.

Key modules:
- transport: SSDP multicast socket
- ssdp: SSDP message codec and renderer filter
- registry: Deduplicated device registry with events
- device: Device model and description resolver
- soap: SOAP action client
- avtransport / rendering_control: Typed playback and volume actions
- discovery: Time-bounded discovery session
- engine: UPnPEngine, the operations a host application calls

Example usage:
    from dlna_control import UPnPEngine

    engine = UPnPEngine()
    devices = engine.discover(timeout=5.0)
    engine.play_media(devices[0]["id"], "http://192.168.1.10:8000/track.mp3", "Song A")
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .backend import RendererBackend
from .device import DescriptionResolver, DiscoveredDevice, ServiceCapability
from .discovery import DiscoverySession, SessionState
from .engine import UPnPEngine
from .errors import (
    ActionFault,
    CapabilityMissingError,
    DescriptionError,
    DescriptionFetchError,
    DescriptionParseError,
    DeviceNotFoundError,
    DLNAControlError,
    MalformedDatagramError,
    SessionStateError,
    TransportError,
)
from .events import Event, EventChannel, EventType
from .registry import DeviceRegistry
from .soap import SOAPClient
from .transport import SSDPTransport

__all__ = [
    "UPnPEngine",
    "RendererBackend",
    "DiscoverySession",
    "SessionState",
    "DeviceRegistry",
    "DescriptionResolver",
    "DiscoveredDevice",
    "ServiceCapability",
    "SOAPClient",
    "SSDPTransport",
    "Event",
    "EventChannel",
    "EventType",
    "DLNAControlError",
    "TransportError",
    "MalformedDatagramError",
    "SessionStateError",
    "DeviceNotFoundError",
    "DescriptionError",
    "DescriptionFetchError",
    "DescriptionParseError",
    "CapabilityMissingError",
    "ActionFault",
]
