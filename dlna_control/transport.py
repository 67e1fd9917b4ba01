"""
SSDP multicast transport.

Owns the UDP socket used for discovery: joins the SSDP multicast group on the
first usable interface, sends M-SEARCH datagrams and receives responses with a
bounded timeout.
"""

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

import netifaces

from . import config
from .errors import TransportError

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class MulticastLock:
    """Reference-counted hold on the platform's multicast-receive capability.

    Desktop platforms need no explicit lock, so acquire/release hooks are
    optional. On platforms that filter multicast by default (e.g. Android's
    WifiManager.MulticastLock) the hooks take and drop the real lock when the
    count moves between zero and one.
    """

    def __init__(self, on_acquire: Optional[Callable[[], None]] = None,
                 on_release: Optional[Callable[[], None]] = None):
        self._on_acquire = on_acquire
        self._on_release = on_release
        self._count = 0
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._count > 0

    def acquire(self) -> None:
        with self._lock:
            self._count += 1
            if self._count == 1 and self._on_acquire is not None:
                self._on_acquire()

    def release(self) -> None:
        with self._lock:
            if self._count == 0:
                return
            self._count -= 1
            if self._count == 0 and self._on_release is not None:
                self._on_release()


# Shared by every transport in the process so concurrent sessions do not
# release each other's hold.
default_multicast_lock = MulticastLock()


def select_interface_address() -> str:
    """Return the IPv4 address of the first up, non-loopback interface.

    Interfaces are taken in enumeration order; netifaces reports no link
    state, so an interface counts as up when it has an IPv4 address
    assigned. Pass interface_address to SSDPTransport to pin one.

    Raises:
        TransportError: If no such interface exists
    """
    for ifname in netifaces.interfaces():
        for addrinfo in netifaces.ifaddresses(ifname).get(netifaces.AF_INET, []):
            ip = addrinfo.get("addr")
            if ip and not ip.startswith("127."):
                logger.debug("Using interface %s (%s) for SSDP", ifname, ip)
                return ip
    raise TransportError("No non-loopback IPv4 interface is up")


class SSDPTransport:
    """UDP multicast socket for SSDP discovery.

    Example:
        transport = SSDPTransport()
        transport.join()
        try:
            transport.send(build_msearch())
            packet = transport.receive(timeout=1.0)
        finally:
            transport.leave()
    """

    def __init__(
        self,
        group: str = config.SSDP_MCAST_ADDR,
        port: int = config.SSDP_PORT,
        interface_address: Optional[str] = None,
        multicast_lock: Optional[MulticastLock] = None,
        ttl: int = config.MULTICAST_TTL,
    ):
        self.group = group
        self.port = port
        self.interface_address = interface_address
        self.multicast_lock = multicast_lock or default_multicast_lock
        self.ttl = ttl
        self._sock: Optional[socket.socket] = None
        self._membership: Optional[bytes] = None

    @property
    def joined(self) -> bool:
        return self._sock is not None

    def join(self) -> None:
        """Bind the SSDP port and join the multicast group.

        Raises:
            TransportError: If the socket cannot be bound or the group joined
        """
        if self._sock is not None:
            return
        interface_address = self.interface_address or select_interface_address()

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            if hasattr(socket, "SO_REUSEPORT"):
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
                except OSError:
                    # Some kernels define the constant but reject the option
                    pass
            sock.bind(("", self.port))
            membership = socket.inet_aton(self.group) + socket.inet_aton(interface_address)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(interface_address))
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, self.ttl)
        except OSError as e:
            sock.close()
            raise TransportError(f"Cannot join {self.group}:{self.port} on {interface_address}: {e}") from e

        self.multicast_lock.acquire()
        self._sock = sock
        self._membership = membership
        logger.info("Joined %s:%d on %s", self.group, self.port, interface_address)

    def send(self, payload: bytes) -> None:
        """Send one datagram to the multicast group."""
        if self._sock is None:
            raise TransportError("Transport is not joined")
        try:
            self._sock.sendto(payload, (self.group, self.port))
        except OSError as e:
            raise TransportError(f"Send to {self.group}:{self.port} failed: {e}") from e
        logger.debug("Sent %d bytes to %s:%d", len(payload), self.group, self.port)

    def receive(self, timeout: float) -> Optional[Tuple[bytes, Address]]:
        """Wait up to timeout seconds for one datagram.

        Returns:
            (payload, (ip, port)), or None if nothing arrived in time
        """
        if self._sock is None:
            raise TransportError("Transport is not joined")
        self._sock.settimeout(timeout)
        try:
            data, addr = self._sock.recvfrom(config.MAX_DATAGRAM_SIZE)
        except socket.timeout:
            return None
        except OSError as e:
            raise TransportError(f"Receive failed: {e}") from e
        return data, addr

    def leave(self) -> None:
        """Leave the group and close the socket. Safe to call repeatedly."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            if self._membership is not None:
                sock.setsockopt(socket.IPPROTO_IP, socket.IP_DROP_MEMBERSHIP, self._membership)
        except OSError as e:
            logger.debug("Drop membership failed: %s", e)
        finally:
            self._membership = None
            sock.close()
            self.multicast_lock.release()
        logger.info("Left %s:%d", self.group, self.port)
