"""
UPnP device model and device description resolution for DLNA MediaRenderers.

This module holds the data model shared by the registry and the control
client, and the resolver that fetches a device's description XML document to
learn its service control URLs.

Key components:
- ServiceCapability: One control service (AVTransport / RenderingControl)
- DiscoveredDevice: A renderer found via SSDP, optionally resolved
- parse_description(): Parses description XML into capabilities
- DescriptionResolver: Fetches, parses and feeds results back to the registry

Example usage:
    from dlna_control.device import DescriptionResolver

    resolver = DescriptionResolver(registry)
    device = resolver.resolve(registry.get(device_id))
    print(f"Device: {device.friendly_name}")
    print(f"AVTransport: {device.find_capability('AVTransport').control_url}")
"""

import logging
import re
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple

from . import config
from .errors import DescriptionFetchError, DescriptionParseError

logger = logging.getLogger(__name__)

_SERVICE_TYPE_RE = re.compile(r":service:([^:]+):(\d+)\s*$")


@dataclass(frozen=True)
class ServiceCapability:
    """A control service offered by a device.

    Attributes:
        service_type (str): Service type exactly as advertised
        service_name (str): Short name, e.g. "AVTransport"
        service_version (int): Version suffix of the service type, 1 if absent
        control_url (str): Absolute SOAP control URL
        event_url (str): Absolute event subscription URL (may be empty)
    """

    service_type: str
    service_name: str
    service_version: int
    control_url: str
    event_url: str = ""

    @property
    def urn(self) -> str:
        """Service type URN used in SOAPACTION headers and action namespaces."""
        return f"{config.UPNP_SERVICE_URN_PREFIX}{self.service_name}:{self.service_version}"


@dataclass
class DiscoveredDevice:
    """A media renderer found on the network.

    Instances handed out by the registry are copies; mutating one never
    changes registry state.

    Attributes:
        id (str): Device UDN, or the source IP when the device sent no USN
        description_url (str): Absolute URL of the description XML (SSDP LOCATION)
        host (str): IP address the SSDP response came from
        friendly_name (str): Human-readable name, empty until resolved
        server (str): SSDP SERVER header, used as a name hint before resolution
        search_target (str): ST (or NT) the device answered with
        capabilities (Tuple[ServiceCapability, ...]): Known control services
        last_seen (float): Monotonic timestamp of the latest SSDP message
        resolved (bool): Whether the description document has been parsed
    """

    id: str
    description_url: str
    host: str = ""
    friendly_name: str = ""
    server: str = ""
    search_target: str = ""
    capabilities: Tuple[ServiceCapability, ...] = field(default_factory=tuple)
    last_seen: float = 0.0
    resolved: bool = False

    @property
    def name(self) -> str:
        return self.friendly_name or self.server or "UPnP Device"

    def find_capability(self, service_name: str) -> Optional[ServiceCapability]:
        for capability in self.capabilities:
            if capability.service_name == service_name:
                return capability
        return None

    @property
    def supports_playback(self) -> bool:
        # Anything that answered the renderer search is assumed playable until
        # its description says otherwise.
        if not self.resolved:
            return True
        return self.find_capability(config.AVTRANSPORT) is not None

    def copy(self) -> "DiscoveredDevice":
        return replace(self)

    def summary(self) -> Dict[str, Any]:
        """Return the payload used for events and device listings."""
        return {
            "id": self.id,
            "name": self.name,
            "type": "UPnP",
            "friendlyName": self.name,
            "url": self.description_url,
            "ip": self.host,
            "supportsPlayback": self.supports_playback,
            "resolved": self.resolved,
        }


def _split_service_type(service_type: str) -> Tuple[str, int]:
    match = _SERVICE_TYPE_RE.search(service_type)
    if match:
        return match.group(1), int(match.group(2))
    # Non-conformant devices sometimes drop the version suffix
    return service_type.rsplit(":", 1)[-1], 1


def _absolute(base_url: str, url: str) -> str:
    if not url:
        return ""
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return urllib.parse.urljoin(base_url, url)


def parse_description(xml_data: bytes, location_url: str) -> Tuple[str, Tuple[ServiceCapability, ...]]:
    """Parse a UPnP device description document.

    UPnP does not always include XML namespaces uniformly, so elements are
    matched by local name. Service types are matched by substring and any
    version suffix is accepted.

    Args:
        xml_data: Raw description document
        location_url: URL the document was fetched from, used as the base
            for relative URLs when no URLBase is given

    Returns:
        Tuple of (friendly_name, capabilities)

    Raises:
        DescriptionParseError: If the XML is malformed, has no device element,
            or a control service lacks its type or control URL
    """
    try:
        root = ET.fromstring(xml_data)
    except ET.ParseError as e:
        raise DescriptionParseError(f"Malformed description at {location_url}: {e}") from e

    device_elem = root.find(".//{*}device")
    if device_elem is None:
        raise DescriptionParseError(f"No <device> element in description at {location_url}")

    friendly_name = (device_elem.findtext("{*}friendlyName") or "").strip()

    base_url = (root.findtext("{*}URLBase") or "").strip() or location_url

    capabilities = []
    for service in root.findall(".//{*}service"):
        service_type = (service.findtext("{*}serviceType") or "").strip()
        if not any(name in service_type for name in config.CONTROL_SERVICES):
            continue
        control_url = (service.findtext("{*}controlURL") or "").strip()
        if not control_url:
            raise DescriptionParseError(f"Service {service_type} at {location_url} has no controlURL")
        service_name, version = _split_service_type(service_type)
        if service_name not in config.CONTROL_SERVICES:
            # e.g. a vendor type that merely mentions AVTransport
            service_name = next(name for name in config.CONTROL_SERVICES if name in service_type)
        capabilities.append(
            ServiceCapability(
                service_type=service_type,
                service_name=service_name,
                service_version=version,
                control_url=_absolute(base_url, control_url),
                event_url=_absolute(base_url, (service.findtext("{*}eventSubURL") or "").strip()),
            )
        )

    return friendly_name, tuple(capabilities)


def fetch_description(location_url: str, timeout: float = config.HTTP_TIMEOUT) -> bytes:
    """Download a device description document.

    Raises:
        DescriptionFetchError: On network failure or a non-success HTTP status
    """
    logger.debug("GET %s", location_url)
    try:
        with urllib.request.urlopen(location_url, timeout=timeout) as resp:
            status = getattr(resp, "status", 200)
            if not 200 <= status < 300:
                raise DescriptionFetchError(f"GET {location_url} returned HTTP {status}")
            return resp.read()
    except urllib.error.HTTPError as e:
        raise DescriptionFetchError(f"GET {location_url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, OSError, ValueError) as e:
        raise DescriptionFetchError(f"GET {location_url} failed: {e}") from e


class DescriptionResolver:
    """Resolves devices' description documents into capabilities.

    Results flow back into the registry through apply_description(); the
    registry is never touched while the HTTP request is in flight.
    """

    def __init__(self, registry=None, timeout: float = config.HTTP_TIMEOUT):
        self.registry = registry
        self.timeout = timeout

    def resolve(self, device: DiscoveredDevice, timeout: Optional[float] = None) -> DiscoveredDevice:
        """Fetch and parse the device's description.

        Returns a resolved copy of the device. The passed-in device is not
        modified. Safe to call again to refresh capabilities.

        Raises:
            DescriptionFetchError: The document could not be downloaded
            DescriptionParseError: The document could not be parsed
        """
        xml_data = fetch_description(device.description_url, self.timeout if timeout is None else timeout)
        friendly_name, capabilities = parse_description(xml_data, device.description_url)

        resolved = replace(
            device,
            friendly_name=friendly_name or device.friendly_name,
            capabilities=capabilities,
            resolved=True,
        )
        logger.info(
            "Resolved %s (%s): %s",
            resolved.name,
            resolved.id,
            ", ".join(f"{c.service_name}:{c.service_version}" for c in capabilities) or "no control services",
        )
        if self.registry is not None:
            self.registry.apply_description(resolved)
        return resolved
