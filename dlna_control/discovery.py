"""
Discovery session - one time-bounded SSDP scan.

States: IDLE -> SCANNING -> IDLE. start() joins the transport, clears the
registry and sends one M-SEARCH; a background worker then feeds responses
into the registry until the scan window elapses or stop() is called.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from . import config
from .errors import MalformedDatagramError, SessionStateError, TransportError
from .registry import DeviceRegistry
from .ssdp import build_msearch, decode_message, device_from_message, device_id_from_usn
from .transport import SSDPTransport

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class DiscoverySession:
    """
    A single discovery scan with its own worker thread.

    At most one scan runs per session. Cancellation is cooperative: the
    worker checks a flag between receives, and each receive is bounded by
    receive_timeout, so stop() returns within roughly that long.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        transport: Optional[SSDPTransport] = None,
        scan_window: float = config.SCAN_WINDOW,
        receive_timeout: float = config.RECEIVE_TIMEOUT,
        search_target: str = config.SSDP_SEARCH_TARGET,
        mx: int = config.SSDP_MX,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.registry = registry
        self.transport = transport or SSDPTransport()
        self.scan_window = scan_window
        self.receive_timeout = receive_timeout
        self.search_target = search_target
        self.mx = mx
        self.clock = clock

        self._state = SessionState.IDLE
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._worker: Optional[threading.Thread] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def scanning(self) -> bool:
        return self._state == SessionState.SCANNING

    def start(self, scan_window: Optional[float] = None) -> None:
        """Begin a scan lasting scan_window seconds, or the session default.

        Raises:
            SessionStateError: If a scan is already running
            TransportError: If the socket cannot be set up or the M-SEARCH
                cannot be sent; the session stays IDLE
        """
        with self._state_lock:
            if self._state != SessionState.IDLE:
                raise SessionStateError("Discovery is already running")
            self.transport.join()
            try:
                self.registry.clear()
                self._stop_event.clear()
                self.transport.send(build_msearch(self.search_target, self.mx))
            except TransportError:
                self.transport.leave()
                raise
            self._state = SessionState.SCANNING
            window = self.scan_window if scan_window is None else scan_window
            started_at = self.clock()
            self._worker = threading.Thread(
                target=self._run, args=(started_at, window), name="ssdp-discovery", daemon=True
            )
            self._worker.start()
        logger.info("SSDP discovery started (window %.1fs, MX=%d)", window, self.mx)

    def stop(self) -> None:
        """End the scan. A no-op when no scan is running."""
        if self._state == SessionState.IDLE:
            return
        self._stop_event.set()
        self.wait()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current scan ends. Returns False on timeout."""
        worker = self._worker
        if worker is None or worker is threading.current_thread():
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def _run(self, started_at: float, window: float) -> None:
        try:
            while not self._stop_event.is_set():
                remaining = window - (self.clock() - started_at)
                if remaining <= 0:
                    break
                packet = self.transport.receive(min(self.receive_timeout, remaining))
                if packet is None:
                    continue
                data, (source_ip, _port) = packet
                self.handle_datagram(data, source_ip)
        except TransportError:
            logger.exception("SSDP receive failed, ending scan")
        finally:
            self._finish()

    def handle_datagram(self, data: bytes, source_ip: str) -> None:
        """Decode one datagram and apply it to the registry.

        Malformed datagrams are logged and dropped.
        """
        try:
            message = decode_message(data)
        except MalformedDatagramError as e:
            logger.warning("Dropping datagram from %s: %s", source_ip, e)
            return

        if message.is_byebye:
            self.registry.remove(device_id_from_usn(message.header("usn"), source_ip))
            return

        candidate = device_from_message(message, source_ip, self.clock())
        if candidate is None:
            logger.debug("Ignoring SSDP message from %s: %s", source_ip, message.start_line)
            return
        self.registry.upsert(candidate)

    def _finish(self) -> None:
        with self._state_lock:
            self.transport.leave()
            self._state = SessionState.IDLE
        logger.info("SSDP discovery completed. Found %d devices", len(self.registry))
