from typing import Dict, Optional

from . import config
from .device import DiscoveredDevice
from .errors import ActionFault
from .soap import SOAPClient


def clamp_volume(volume) -> int:
    """Clamp a requested volume to the 0-100 range UPnP renderers accept."""
    return max(0, min(100, int(volume)))


class RenderingControl:
    """Client for the RenderingControl service of a resolved device."""

    service_name = config.RENDERING_CONTROL

    def __init__(self, client: SOAPClient):
        self.client = client

    def set_volume(self, device: DiscoveredDevice, volume: int, channel: str = config.MASTER_CHANNEL,
                   timeout: Optional[float] = None) -> int:
        """Set the volume, clamped to 0-100. Returns the value sent."""
        volume = clamp_volume(volume)
        args = [
            ("InstanceID", config.INSTANCE_ID),
            ("Channel", channel),
            ("DesiredVolume", str(volume)),
        ]
        self.client.invoke(device, self.service_name, "SetVolume", args, timeout=timeout)
        return volume

    def get_volume(self, device: DiscoveredDevice, channel: str = config.MASTER_CHANNEL,
                   timeout: Optional[float] = None) -> int:
        args = [("InstanceID", config.INSTANCE_ID), ("Channel", channel)]
        result: Dict[str, str] = self.client.invoke(device, self.service_name, "GetVolume", args, timeout=timeout)
        raw = result.get("CurrentVolume", "")
        try:
            return clamp_volume(raw.strip())
        except ValueError:
            raise ActionFault("GetVolume", None, f"Invalid CurrentVolume {raw!r}") from None
