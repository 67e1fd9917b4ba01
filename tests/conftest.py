import http.client

import pytest

from dlna_control.device import DiscoveredDevice, ServiceCapability
from dlna_control.errors import TransportError

DESCRIPTION_URL = "http://192.168.1.50:49152/description.xml"

DESCRIPTION_XML = b"""<?xml version="1.0" encoding="UTF-8"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <device>
    <deviceType>urn:schemas-upnp-org:device:MediaRenderer:1</deviceType>
    <friendlyName>Living Room TV</friendlyName>
    <UDN>uuid:dev-1</UDN>
    <serviceList>
      <service>
        <serviceType>urn:schemas-upnp-org:service:AVTransport:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:AVTransport</serviceId>
        <controlURL>/upnp/control/AVTransport1</controlURL>
        <eventSubURL>/upnp/event/AVTransport1</eventSubURL>
      </service>
      <service>
        <serviceType>urn:schemas-upnp-org:service:ConnectionManager:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:ConnectionManager</serviceId>
        <controlURL>/upnp/control/ConnectionManager1</controlURL>
        <eventSubURL>/upnp/event/ConnectionManager1</eventSubURL>
      </service>
    </serviceList>
  </device>
</root>
"""


def ssdp_response(usn="uuid:dev-1::urn:schemas-upnp-org:device:MediaRenderer:1",
                  location=DESCRIPTION_URL,
                  st="urn:schemas-upnp-org:device:MediaRenderer:1",
                  server="Linux/4.9 UPnP/1.0 Renderer/1.0") -> bytes:
    lines = ["HTTP/1.1 200 OK", "CACHE-CONTROL: max-age=1800", "EXT:"]
    if location is not None:
        lines.append(f"LOCATION: {location}")
    if server is not None:
        lines.append(f"SERVER: {server}")
    if st is not None:
        lines.append(f"ST: {st}")
    if usn is not None:
        lines.append(f"USN: {usn}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")


def make_device(device_id="uuid:dev-1", resolved=True, services=("AVTransport", "RenderingControl"),
                version=1, last_seen=0.0) -> DiscoveredDevice:
    capabilities = tuple(
        ServiceCapability(
            service_type=f"urn:schemas-upnp-org:service:{name}:{version}",
            service_name=name,
            service_version=version,
            control_url=f"http://192.168.1.50:49152/upnp/control/{name}1",
            event_url=f"http://192.168.1.50:49152/upnp/event/{name}1",
        )
        for name in services
    ) if resolved else ()
    return DiscoveredDevice(
        id=device_id,
        description_url=DESCRIPTION_URL,
        host="192.168.1.50",
        friendly_name="Living Room TV" if resolved else "",
        server="Linux/4.9 UPnP/1.0 Renderer/1.0",
        capabilities=capabilities,
        last_seen=last_seen,
        resolved=resolved,
    )


def soap_response(action, service="AVTransport", outputs=None) -> bytes:
    body = "".join(f"<{k}>{v}</{k}>" for k, v in (outputs or {}).items())
    return (
        '<?xml version="1.0"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" '
        's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/"><s:Body>'
        f'<u:{action}Response xmlns:u="urn:schemas-upnp-org:service:{service}:1">{body}</u:{action}Response>'
        "</s:Body></s:Envelope>"
    ).encode("utf-8")


def soap_fault(code="701", description="Transition not available") -> bytes:
    return (
        '<?xml version="1.0"?>'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"><s:Body><s:Fault>'
        "<faultcode>s:Client</faultcode><faultstring>UPnPError</faultstring>"
        '<detail><UPnPError xmlns="urn:schemas-upnp-org:control-1-0">'
        f"<errorCode>{code}</errorCode><errorDescription>{description}</errorDescription>"
        "</UPnPError></detail></s:Fault></s:Body></s:Envelope>"
    ).encode("utf-8")


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class FakeTransport:
    """Scripted stand-in for SSDPTransport driven by a FakeClock.

    script is a list of (arrival_time, payload, (ip, port)).
    """

    def __init__(self, clock, script=(), join_error=None):
        self.clock = clock
        self.script = list(script)
        self.join_error = join_error
        self.sent = []
        self.joined = False
        self.join_count = 0
        self.leave_count = 0

    def join(self):
        if self.join_error is not None:
            raise TransportError(self.join_error)
        self.joined = True
        self.join_count += 1

    def send(self, payload):
        self.sent.append(payload)

    def receive(self, timeout):
        if self.script and self.script[0][0] <= self.clock.now + timeout:
            at, data, addr = self.script.pop(0)
            self.clock.now = max(self.clock.now, at)
            return data, addr
        self.clock.now += timeout
        return None

    def leave(self):
        if self.joined:
            self.leave_count += 1
        self.joined = False


class FakeResponse:
    def __init__(self, status, body, reason="OK"):
        self.status = status
        self.reason = reason
        self._body = body

    def read(self):
        return self._body


class FakeHTTPConnection:
    """Records SOAP POSTs and answers from a per-action response table."""

    requests = []
    responses = {}

    def __init__(self, host, port=None, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout

    def request(self, method, path, body=None, headers=None):
        headers = headers or {}
        action = headers.get("SOAPACTION", "").strip('"').rsplit("#", 1)[-1]
        self._action = action
        FakeHTTPConnection.requests.append(
            {"method": method, "host": self.host, "port": self.port, "path": path,
             "body": body.decode("utf-8"), "headers": headers, "action": action, "timeout": self.timeout}
        )

    def getresponse(self):
        status, body = FakeHTTPConnection.responses.get(self._action, (200, b""))
        if isinstance(status, Exception):
            raise status
        return FakeResponse(status, body, "OK" if status < 400 else "Internal Server Error")

    def close(self):
        pass


@pytest.fixture
def fake_http(monkeypatch):
    FakeHTTPConnection.requests = []
    FakeHTTPConnection.responses = {}
    monkeypatch.setattr(http.client, "HTTPConnection", FakeHTTPConnection)
    return FakeHTTPConnection


@pytest.fixture
def clock():
    return FakeClock()
