"""
SSDP (Simple Service Discovery Protocol) message codec for DLNA/UPnP discovery.

This module encodes the M-SEARCH request and decodes the HTTP-like responses
and announcements that media renderers send back.

Key components:
- build_msearch(): Fixed M-SEARCH request template
- SSDPMessage: A decoded datagram (start line + lowercase headers)
- decode_message(): Raw bytes to SSDPMessage
- is_renderer_response(): Heuristic MediaRenderer filter
- device_from_message(): SSDPMessage to a registry candidate

Example usage:
    from dlna_control.ssdp import decode_message, device_from_message

    message = decode_message(data)
    candidate = device_from_message(message, source_ip="192.168.1.20", seen_at=time.monotonic())
    if candidate is not None:
        registry.upsert(candidate)
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

from . import config
from .device import DiscoveredDevice
from .errors import MalformedDatagramError

# Substrings of ST that identify a media renderer. This is a heuristic, not an
# exact service-type match: any vendor type mentioning these is accepted.
RENDERER_ST_MARKERS = ("MediaRenderer", "AVTransport")


def build_msearch(st: str = config.SSDP_SEARCH_TARGET, mx: int = config.SSDP_MX) -> bytes:
    """Return the M-SEARCH request datagram.

    Args:
        st: Search Target
        mx: Maximum wait devices should randomize their response over, seconds
    """
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {config.SSDP_MCAST_ADDR}:{config.SSDP_PORT}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"ST: {st}\r\n"
        f"MX: {mx}\r\n"
        "\r\n"
    ).encode("utf-8")


@dataclass
class SSDPMessage:
    """A decoded SSDP datagram.

    Attributes:
        start_line (str): Status line ("HTTP/1.1 200 OK") or request line
        headers (Dict[str, str]): Header values keyed by lowercase name
    """

    start_line: str
    headers: Dict[str, str] = field(default_factory=dict)

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @property
    def is_search_request(self) -> bool:
        """True for M-SEARCH requests from other control points (or our own echo)."""
        return self.start_line.upper().startswith("M-SEARCH")

    @property
    def is_notify(self) -> bool:
        return self.start_line.upper().startswith("NOTIFY")

    @property
    def is_byebye(self) -> bool:
        return self.is_notify and self.header("nts").lower() == "ssdp:byebye"


def decode_message(data: bytes) -> SSDPMessage:
    """Parse raw datagram bytes into an SSDPMessage.

    Lines are split on CRLF, the start line is kept aside, and every other
    line is split on its first colon. Lines without a colon are ignored.

    Raises:
        MalformedDatagramError: If the datagram is empty or has no
            HTTP-like start line
    """
    text = data.decode("utf-8", errors="replace")
    lines = text.split("\r\n")
    start_line = lines[0].strip()
    if not start_line.upper().startswith(("HTTP/", "M-SEARCH", "NOTIFY")):
        raise MalformedDatagramError(f"Not an SSDP message: {start_line[:60]!r}")

    headers = {}
    for line in lines[1:]:
        if ":" in line:
            k, v = line.split(":", 1)
            headers[k.strip().lower()] = v.strip()
    return SSDPMessage(start_line=start_line, headers=headers)


def is_renderer_response(headers: Dict[str, str]) -> bool:
    """Return True if a response should be tracked as a media renderer.

    A missing ST is treated as match-all.
    """
    st = headers.get("st")
    if st is None:
        return True
    return any(marker in st for marker in RENDERER_ST_MARKERS)


def device_id_from_usn(usn: str, fallback: str) -> str:
    """Return the device UDN from a USN, or fallback when the USN is empty.

    "uuid:1234::urn:schemas-upnp-org:device:MediaRenderer:1" -> "uuid:1234"
    """
    usn = usn.strip()
    if not usn:
        return fallback
    return usn.split("::", 1)[0]


def device_from_message(message: SSDPMessage, source_ip: str, seen_at: float) -> Optional[DiscoveredDevice]:
    """Turn a decoded response or alive announcement into a registry candidate.

    Returns None for search requests, messages without LOCATION, and
    responses whose ST does not look like a media renderer.
    """
    if message.is_search_request or message.is_byebye:
        return None
    location = message.header("location")
    if not location:
        return None
    if message.is_notify:
        # Announcements carry NT instead of ST; filter on it the same way
        if not is_renderer_response({"st": message.header("nt")}):
            return None
    elif not is_renderer_response(message.headers):
        return None
    return DiscoveredDevice(
        id=device_id_from_usn(message.header("usn"), source_ip),
        description_url=location,
        host=source_ip,
        server=message.header("server"),
        search_target=message.header("st") or message.header("nt"),
        last_seen=seen_at,
    )
