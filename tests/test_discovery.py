import time

import pytest

from conftest import FakeTransport, ssdp_response

from dlna_control.discovery import DiscoverySession, SessionState
from dlna_control.errors import SessionStateError, TransportError
from dlna_control.events import EventChannel, EventType
from dlna_control.registry import DeviceRegistry

ADDR = ("192.168.1.50", 1900)


def make_session(clock, script=(), **kwargs):
    transport = FakeTransport(clock, script, **kwargs)
    registry = DeviceRegistry(EventChannel(queue_events=True))
    session = DiscoverySession(registry, transport=transport, scan_window=5.0, receive_timeout=1.0, clock=clock)
    return session, transport, registry


def test_single_response_scan(clock):
    session, transport, registry = make_session(clock, [(1.0, ssdp_response(), ADDR)])

    session.start()
    assert session.wait(timeout=5)
    clock.now = 6.0

    assert session.state == SessionState.IDLE
    assert transport.sent[0].startswith(b"M-SEARCH * HTTP/1.1\r\n")
    assert b"MX: 3\r\n" in transport.sent[0]
    devices = registry.list()
    assert len(devices) == 1
    assert devices[0].id == "uuid:dev-1"
    assert devices[0].resolved is False
    assert devices[0].last_seen == 1.0
    assert transport.leave_count == 1


def test_scan_ends_after_window(clock):
    session, transport, _ = make_session(clock)
    session.start()
    session.wait(timeout=5)
    assert clock.now == pytest.approx(5.0)
    assert not transport.joined


def test_duplicates_and_filtered_datagrams(clock):
    script = [
        (0.5, ssdp_response(), ADDR),
        (0.7, ssdp_response(usn="uuid:dev-1::urn:schemas-upnp-org:service:AVTransport:1",
                            st="urn:schemas-upnp-org:service:AVTransport:1"), ADDR),
        (0.9, ssdp_response(location=None, usn="uuid:no-location"), ("192.168.1.60", 1900)),
        (1.1, ssdp_response(st="upnp:rootdevice", usn="uuid:router::upnp:rootdevice"), ("192.168.1.1", 1900)),
        (1.3, b"\xff\xfenot ssdp at all", ("192.168.1.99", 1900)),
        (1.5, ssdp_response(usn=None), ("192.168.1.70", 1900)),
    ]
    session, _, registry = make_session(clock, script)
    session.start()
    session.wait(timeout=5)

    ids = sorted(d.id for d in registry.list())
    assert ids == ["192.168.1.70", "uuid:dev-1"]
    discovered = [e for e in registry.events.drain() if e.type == EventType.DEVICE_DISCOVERED]
    assert [e.device_id for e in discovered] == ["uuid:dev-1", "192.168.1.70"]


def test_byebye_removes_device(clock):
    byebye = b"NOTIFY * HTTP/1.1\r\nNTS: ssdp:byebye\r\nUSN: uuid:dev-1::upnp:rootdevice\r\n\r\n"
    session, _, registry = make_session(clock, [(0.5, ssdp_response(), ADDR), (2.0, byebye, ADDR)])
    session.start()
    session.wait(timeout=5)
    assert registry.list() == []


def test_start_clears_registry(clock):
    session, transport, registry = make_session(clock, [(1.0, ssdp_response(), ADDR)])
    session.start()
    session.wait(timeout=5)
    assert len(registry) == 1

    session.start()
    session.wait(timeout=5)
    assert len(registry) == 0
    assert transport.join_count == 2


def test_join_failure_keeps_session_idle(clock):
    session, _, _ = make_session(clock, join_error="bind failed")
    with pytest.raises(TransportError):
        session.start()
    assert session.state == SessionState.IDLE


def test_stop_is_idempotent_when_idle(clock):
    session, transport, _ = make_session(clock)
    session.stop()
    session.stop()
    assert session.state == SessionState.IDLE
    assert transport.sent == []


class BlockingTransport(FakeTransport):
    """Never receives anything; each receive just burns a little real time."""

    def receive(self, timeout):
        time.sleep(0.01)
        return None


def test_stop_interrupts_scan():
    registry = DeviceRegistry(EventChannel(queue_events=True))
    transport = BlockingTransport(clock=None)
    session = DiscoverySession(registry, transport=transport, scan_window=60.0, receive_timeout=0.05)

    session.start()
    assert session.scanning
    with pytest.raises(SessionStateError):
        session.start()

    session.stop()
    assert session.state == SessionState.IDLE
    assert not transport.joined
    assert transport.leave_count == 1
