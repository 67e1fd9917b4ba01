"""
UPnP renderer engine - the operations a host application calls.

Ties the discovery session, registry, description resolver and SOAP client
together. Descriptions are resolved lazily, the first time a device is
controlled.

Example usage:
    from dlna_control import UPnPEngine

    engine = UPnPEngine()
    engine.events.subscribe(lambda event: print(event.type.value, event.data))
    engine.start_discovery()
    engine.session.wait()
    for device in engine.get_discovered_devices():
        print(device["friendlyName"], device["url"])
    engine.play_media(device["id"], "http://192.168.1.10:8000/track.mp3", "Song A")
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from . import config
from .avtransport import AVTransport, build_didl_lite_metadata
from .backend import RendererBackend
from .device import DescriptionResolver, DiscoveredDevice
from .discovery import DiscoverySession
from .errors import DeviceNotFoundError, SessionStateError
from .events import EventChannel
from .registry import DeviceRegistry
from .rendering_control import RenderingControl
from .soap import SOAPClient
from .transport import SSDPTransport

logger = logging.getLogger(__name__)


class UPnPEngine(RendererBackend):
    """UPnP/DLNA renderer backend.

    Every control operation raises DeviceNotFoundError for unknown ids and
    lets DescriptionError, CapabilityMissingError, ActionFault and
    TransportError propagate to the caller. Nothing is retried.
    """

    name = "upnp"

    def __init__(
        self,
        transport: Optional[SSDPTransport] = None,
        events: Optional[EventChannel] = None,
        soap_client: Optional[SOAPClient] = None,
        resolver: Optional[DescriptionResolver] = None,
        scan_window: float = config.SCAN_WINDOW,
        receive_timeout: float = config.RECEIVE_TIMEOUT,
        http_timeout: float = config.HTTP_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.events = events or EventChannel()
        self.registry = DeviceRegistry(self.events)
        self.session = DiscoverySession(
            self.registry,
            transport=transport,
            scan_window=scan_window,
            receive_timeout=receive_timeout,
            clock=clock,
        )
        self.resolver = resolver or DescriptionResolver(self.registry, timeout=http_timeout)
        self.soap = soap_client or SOAPClient(timeout=http_timeout)
        self.avtransport = AVTransport(self.soap)
        self.rendering_control = RenderingControl(self.soap)
        self.clock = clock

    # ---- discovery -------------------------------------------------------

    def start_discovery(self) -> Dict[str, Any]:
        """Begin a scan. The registry is reset first.

        Raises:
            TransportError: The multicast socket could not be set up
        """
        try:
            self.session.start()
        except SessionStateError:
            return {"success": False, "message": "Discovery already in progress"}
        return {"success": True, "message": "SSDP Discovery started"}

    def stop_discovery(self) -> Dict[str, Any]:
        self.session.stop()
        return {"success": True, "message": "Discovery stopped"}

    def get_discovered_devices(self) -> List[Dict[str, Any]]:
        return [device.summary() for device in self.registry.list()]

    def prune_stale_devices(self, max_age: float = config.STALE_AGE) -> List[str]:
        """Drop devices that have not answered for max_age seconds."""
        return self.registry.sweep_stale(max_age, self.clock())

    def discover(self, timeout: float = config.SCAN_WINDOW) -> List[Dict[str, Any]]:
        """Run a full scan and return what was found."""
        self.session.start(scan_window=timeout)
        self.session.wait()
        return self.get_discovered_devices()

    # ---- control ---------------------------------------------------------

    def _device(self, device_id: str) -> DiscoveredDevice:
        device = self.registry.get(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device

    def _resolved_device(self, device_id: str) -> DiscoveredDevice:
        device = self._device(device_id)
        if not device.resolved:
            device = self.resolver.resolve(device)
        return device

    def connect(self, device_id: str) -> Dict[str, Any]:
        """Resolve the device description (again, if already resolved)."""
        device = self.resolver.resolve(self._device(device_id))
        return device.summary()

    def load_media(self, device_id: str, media_url: str, title: str) -> Dict[str, Any]:
        device = self._resolved_device(device_id)
        self.avtransport.set_transport_uri(device, media_url, build_didl_lite_metadata(title))
        return {"success": True}

    def play_media(self, device_id: str, media_url: str, title: str) -> Dict[str, Any]:
        """Load a URL on the device and start playback.

        Play is only sent once SetAVTransportURI has succeeded.
        """
        device = self._resolved_device(device_id)
        self.avtransport.set_transport_uri(device, media_url, build_didl_lite_metadata(title))
        self.avtransport.play(device)
        logger.info("Playing %r on %s", title, device.name)
        return {"success": True}

    def play(self, device_id: str) -> Dict[str, Any]:
        self.avtransport.play(self._resolved_device(device_id))
        return {"success": True}

    def pause(self, device_id: str) -> Dict[str, Any]:
        self.avtransport.pause(self._resolved_device(device_id))
        return {"success": True}

    def stop(self, device_id: str) -> Dict[str, Any]:
        self.avtransport.stop(self._resolved_device(device_id))
        return {"success": True}

    def seek(self, device_id: str, seconds: int) -> Dict[str, Any]:
        self.avtransport.seek(self._resolved_device(device_id), seconds)
        return {"success": True}

    def get_playback_status(self, device_id: str) -> Dict[str, Any]:
        """Now-playing state for a media-session collaborator."""
        device = self._resolved_device(device_id)
        transport = self.avtransport.get_transport_info(device)
        position = self.avtransport.get_position_info(device)
        state = transport.get("CurrentTransportState", "")
        return {
            "state": state,
            "playing": state == "PLAYING",
            "position": position["position"],
            "duration": position["duration"],
            "uri": position.get("TrackURI", ""),
        }

    def set_volume(self, device_id: str, volume: int) -> Dict[str, Any]:
        applied = self.rendering_control.set_volume(self._resolved_device(device_id), volume)
        return {"success": True, "volume": applied}

    def get_volume(self, device_id: str) -> Dict[str, Any]:
        volume = self.rendering_control.get_volume(self._resolved_device(device_id))
        # Mute is not queried
        return {"volume": volume, "muted": False}
