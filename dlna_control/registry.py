"""
Device registry - the deduplicated set of discovered renderers.

The discovery worker writes, control calls read. A single lock guards the
map and is only held for the map operation itself; events are published
after it is released.
"""

import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional

from .device import DiscoveredDevice
from .events import Event, EventChannel, EventType

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    Devices keyed by id.

    Features:
    - upsert() merges repeated SSDP responses into one entry
    - Events for discovered/updated/removed devices
    - get()/list() return copies
    - Optional staleness sweep
    """

    def __init__(self, events: Optional[EventChannel] = None):
        self.events = events or EventChannel()
        self._devices: Dict[str, DiscoveredDevice] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._devices)

    def __contains__(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._devices

    def upsert(self, candidate: DiscoveredDevice) -> DiscoveredDevice:
        """Insert a new device or merge a repeated sighting.

        New devices are stored unresolved. For known devices last_seen only
        moves forward and non-empty fields from the candidate are taken over;
        deviceUpdated is emitted only if the device summary changed.

        Returns:
            A copy of the stored device
        """
        with self._lock:
            existing = self._devices.get(candidate.id)
            if existing is None:
                stored = replace(candidate, capabilities=(), resolved=False)
                self._devices[stored.id] = stored
                event = Event(EventType.DEVICE_DISCOVERED, stored.summary())
            else:
                stored = replace(
                    existing,
                    description_url=candidate.description_url or existing.description_url,
                    host=candidate.host or existing.host,
                    server=candidate.server or existing.server,
                    search_target=candidate.search_target or existing.search_target,
                    friendly_name=candidate.friendly_name or existing.friendly_name,
                    last_seen=max(existing.last_seen, candidate.last_seen),
                )
                self._devices[stored.id] = stored
                summary = stored.summary()
                event = Event(EventType.DEVICE_UPDATED, summary) if summary != existing.summary() else None
            result = stored.copy()

        if event is not None:
            if event.type == EventType.DEVICE_DISCOVERED:
                logger.info("Device discovered: %s at %s", result.name, result.description_url)
            self.events.publish(event)
        return result

    def apply_description(self, resolved: DiscoveredDevice) -> Optional[DiscoveredDevice]:
        """Store a resolver result for a device that is still registered.

        Returns:
            A copy of the stored device, or None if the device was removed
            while its description was being fetched
        """
        with self._lock:
            existing = self._devices.get(resolved.id)
            if existing is None:
                return None
            stored = replace(
                existing,
                friendly_name=resolved.friendly_name or existing.friendly_name,
                capabilities=resolved.capabilities,
                resolved=resolved.resolved,
            )
            self._devices[stored.id] = stored
            changed = stored.summary() != existing.summary() or stored.capabilities != existing.capabilities
            result = stored.copy()

        if changed:
            self.events.publish(Event(EventType.DEVICE_UPDATED, result.summary()))
        return result

    def remove(self, device_id: str) -> bool:
        """Remove a device. Returns False if it was not registered."""
        with self._lock:
            removed = self._devices.pop(device_id, None)
        if removed is None:
            return False
        logger.info("Device removed: %s (%s)", removed.name, device_id)
        self.events.publish(Event(EventType.DEVICE_REMOVED, {"id": device_id}))
        return True

    def get(self, device_id: str) -> Optional[DiscoveredDevice]:
        with self._lock:
            device = self._devices.get(device_id)
            return device.copy() if device is not None else None

    def list(self) -> List[DiscoveredDevice]:
        with self._lock:
            return [device.copy() for device in self._devices.values()]

    def clear(self) -> None:
        """Remove every device, emitting deviceRemoved for each."""
        with self._lock:
            removed = list(self._devices)
            self._devices.clear()
        for device_id in removed:
            self.events.publish(Event(EventType.DEVICE_REMOVED, {"id": device_id}))

    def sweep_stale(self, max_age: float, now: float) -> List[str]:
        """Remove devices not seen within max_age seconds of now.

        Returns:
            Ids of the removed devices
        """
        with self._lock:
            stale = [d.id for d in self._devices.values() if now - d.last_seen > max_age]
            for device_id in stale:
                del self._devices[device_id]
        for device_id in stale:
            logger.info("Device %s is stale, removing", device_id)
            self.events.publish(Event(EventType.DEVICE_REMOVED, {"id": device_id}))
        return stale
