from typing import Dict, Optional

from . import config
from .device import DiscoveredDevice
from .soap import SOAPClient, _escape_xml


def build_didl_lite_metadata(title: str) -> str:
    """Return a minimal DIDL-Lite document with a single titled item.

    Only dc:title is included; no album art, duration or protocolInfo.
    """
    return (
        '<DIDL-Lite xmlns="urn:schemas-upnp-org:metadata-1-0/DIDL-Lite/" '
        'xmlns:dc="http://purl.org/dc/elements/1.1/" '
        'xmlns:upnp="urn:schemas-upnp-org:metadata-1-0/upnp/">'
        '<item id="0" parentID="0" restricted="1">'
        f"<dc:title>{_escape_xml(title)}</dc:title>"
        "<upnp:class>object.item.audioItem.musicTrack</upnp:class>"
        "</item>"
        "</DIDL-Lite>"
    )


def _hhmmss_to_seconds(hhmmss: str) -> int:
    """Convert HH:MM:SS (optionally with fractional seconds) to whole seconds."""
    if not hhmmss:
        return 0
    parts = hhmmss.split(":")
    if len(parts) != 3:
        return 0
    try:
        h, m, s = parts
        return int(h) * 3600 + int(m) * 60 + int(float(s))
    except (ValueError, TypeError):
        return 0


def _seconds_to_hhmmss(seconds: int) -> str:
    """Convert total seconds to HH:MM:SS string."""
    seconds = max(0, int(seconds))
    h = seconds // 3600
    m = (seconds % 3600) // 60
    s = seconds % 60
    return f"{h:02d}:{m:02d}:{s:02d}"


class AVTransport:
    """Client for the AVTransport service of a resolved device."""

    service_name = config.AVTRANSPORT

    def __init__(self, client: SOAPClient):
        self.client = client

    def _invoke(self, device: DiscoveredDevice, action: str, *arguments, timeout: Optional[float] = None):
        args = [("InstanceID", config.INSTANCE_ID)]
        args.extend(arguments)
        return self.client.invoke(device, self.service_name, action, args, timeout=timeout)

    def set_transport_uri(self, device: DiscoveredDevice, media_url: str, didl_metadata: str = "",
                          timeout: Optional[float] = None) -> Dict[str, str]:
        """Set the URI to play and optional DIDL-Lite metadata for the item."""
        return self._invoke(
            device,
            "SetAVTransportURI",
            ("CurrentURI", media_url),
            ("CurrentURIMetaData", didl_metadata),
            timeout=timeout,
        )

    def play(self, device: DiscoveredDevice, speed: str = "1", timeout: Optional[float] = None) -> Dict[str, str]:
        """Start playback at the given speed (usually '1')."""
        return self._invoke(device, "Play", ("Speed", speed), timeout=timeout)

    def pause(self, device: DiscoveredDevice, timeout: Optional[float] = None) -> Dict[str, str]:
        return self._invoke(device, "Pause", timeout=timeout)

    def stop(self, device: DiscoveredDevice, timeout: Optional[float] = None) -> Dict[str, str]:
        return self._invoke(device, "Stop", timeout=timeout)

    def seek(self, device: DiscoveredDevice, seconds: int, timeout: Optional[float] = None) -> Dict[str, str]:
        """Seek to a position relative to the track start."""
        return self._invoke(
            device, "Seek", ("Unit", "REL_TIME"), ("Target", _seconds_to_hhmmss(seconds)), timeout=timeout
        )

    def get_position_info(self, device: DiscoveredDevice, timeout: Optional[float] = None) -> Dict[str, object]:
        """Return the raw GetPositionInfo outputs plus parsed position/duration in seconds."""
        info: Dict[str, object] = dict(self._invoke(device, "GetPositionInfo", timeout=timeout))
        info["position"] = _hhmmss_to_seconds(str(info.get("RelTime", "")))
        info["duration"] = _hhmmss_to_seconds(str(info.get("TrackDuration", "")))
        return info

    def get_transport_info(self, device: DiscoveredDevice, timeout: Optional[float] = None) -> Dict[str, str]:
        """Return CurrentTransportState (PLAYING, PAUSED_PLAYBACK, STOPPED, ...) and friends."""
        return self._invoke(device, "GetTransportInfo", timeout=timeout)
