"""
Renderer backend interface.

A host application picks one backend (UPnP here, a cast SDK elsewhere) and
drives it through these operations only. Backend-specific types stay behind
this interface: devices are exchanged as plain summary dicts and ids, and
results are dicts a host bridge can forward unchanged. Failures raise
DLNAControlError subclasses.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class RendererBackend(ABC):
    """Operations every renderer backend provides."""

    name: str = "renderer"

    @abstractmethod
    def discover(self, timeout: float) -> List[Dict[str, Any]]:
        """Scan for devices and return their summaries."""

    @abstractmethod
    def connect(self, device_id: str) -> Dict[str, Any]:
        """Prepare a device for control and return its summary."""

    @abstractmethod
    def load_media(self, device_id: str, media_url: str, title: str) -> Dict[str, Any]:
        """Load a media URL without starting playback."""

    @abstractmethod
    def play(self, device_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def pause(self, device_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def stop(self, device_id: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def seek(self, device_id: str, seconds: int) -> Dict[str, Any]:
        """Seek to a position in seconds from the track start."""

    @abstractmethod
    def set_volume(self, device_id: str, volume: int) -> Dict[str, Any]:
        """Set the volume, clamped to 0-100. Returns {"success", "volume"}."""

    @abstractmethod
    def get_volume(self, device_id: str) -> Dict[str, Any]:
        """Return {"volume", "muted"}."""
