import pytest

from conftest import DESCRIPTION_URL, ssdp_response

from dlna_control.errors import MalformedDatagramError
from dlna_control.ssdp import (
    build_msearch,
    decode_message,
    device_from_message,
    device_id_from_usn,
    is_renderer_response,
)


def test_msearch_template():
    msg = build_msearch().decode("utf-8")
    assert msg.startswith("M-SEARCH * HTTP/1.1\r\n")
    assert "HOST: 239.255.255.250:1900\r\n" in msg
    assert 'MAN: "ssdp:discover"\r\n' in msg
    assert "ST: ssdp:all\r\n" in msg
    assert "MX: 3\r\n" in msg
    assert msg.endswith("\r\n\r\n")
    # CRLF only
    assert "\n" not in msg.replace("\r\n", "")


def test_decode_lowercases_headers_and_splits_on_first_colon():
    message = decode_message(ssdp_response())
    assert message.start_line == "HTTP/1.1 200 OK"
    assert message.headers["location"] == DESCRIPTION_URL
    assert message.header("LOCATION") == DESCRIPTION_URL
    assert message.header("Usn") == "uuid:dev-1::urn:schemas-upnp-org:device:MediaRenderer:1"
    assert message.headers["ext"] == ""


def test_decode_ignores_lines_without_colon():
    payload = b"HTTP/1.1 200 OK\r\nLOCATION: http://10.0.0.2/d.xml\r\nbad line without colon\r\n\r\n"
    message = decode_message(payload)
    assert message.headers == {"location": "http://10.0.0.2/d.xml"}


@pytest.mark.parametrize("payload", [b"", b"\x00\x01garbage", b"hello world\r\nST: x\r\n"])
def test_decode_rejects_non_ssdp(payload):
    with pytest.raises(MalformedDatagramError):
        decode_message(payload)


@pytest.mark.parametrize(
    "headers,expected",
    [
        ({}, True),
        ({"st": "urn:schemas-upnp-org:device:MediaRenderer:2"}, True),
        ({"st": "urn:schemas-upnp-org:service:AVTransport:1"}, True),
        ({"st": "upnp:rootdevice"}, False),
        ({"st": "urn:schemas-upnp-org:device:InternetGatewayDevice:1"}, False),
    ],
)
def test_renderer_filter(headers, expected):
    assert is_renderer_response(headers) is expected


def test_device_id_from_usn():
    assert device_id_from_usn("uuid:abc::urn:schemas-upnp-org:device:MediaRenderer:1", "1.2.3.4") == "uuid:abc"
    assert device_id_from_usn("uuid:abc", "1.2.3.4") == "uuid:abc"
    assert device_id_from_usn("  ", "1.2.3.4") == "1.2.3.4"


def test_device_from_response():
    device = device_from_message(decode_message(ssdp_response()), "192.168.1.50", 12.5)
    assert device.id == "uuid:dev-1"
    assert device.description_url == DESCRIPTION_URL
    assert device.host == "192.168.1.50"
    assert device.server.startswith("Linux")
    assert device.last_seen == 12.5
    assert device.resolved is False
    assert device.capabilities == ()


def test_device_from_response_falls_back_to_source_ip():
    device = device_from_message(decode_message(ssdp_response(usn=None)), "192.168.1.77", 0.0)
    assert device.id == "192.168.1.77"


def test_response_without_location_is_dropped():
    assert device_from_message(decode_message(ssdp_response(location=None)), "192.168.1.50", 0.0) is None


def test_non_renderer_response_is_dropped():
    message = decode_message(ssdp_response(st="upnp:rootdevice"))
    assert device_from_message(message, "192.168.1.50", 0.0) is None


def test_search_requests_are_ignored():
    assert device_from_message(decode_message(build_msearch()), "192.168.1.2", 0.0) is None


def test_notify_alive_filters_on_nt():
    alive = (
        "NOTIFY * HTTP/1.1\r\nHOST: 239.255.255.250:1900\r\nNTS: ssdp:alive\r\n"
        "NT: urn:schemas-upnp-org:device:MediaRenderer:1\r\n"
        f"LOCATION: {DESCRIPTION_URL}\r\nUSN: uuid:dev-9::urn:schemas-upnp-org:device:MediaRenderer:1\r\n\r\n"
    ).encode("utf-8")
    device = device_from_message(decode_message(alive), "192.168.1.9", 1.0)
    assert device.id == "uuid:dev-9"
    assert device.search_target == "urn:schemas-upnp-org:device:MediaRenderer:1"

    router = alive.replace(b"device:MediaRenderer:1", b"device:InternetGatewayDevice:1")
    assert device_from_message(decode_message(router), "192.168.1.1", 1.0) is None


def test_byebye_is_detected():
    byebye = b"NOTIFY * HTTP/1.1\r\nNTS: ssdp:byebye\r\nUSN: uuid:dev-9::upnp:rootdevice\r\n\r\n"
    message = decode_message(byebye)
    assert message.is_byebye
    assert device_from_message(message, "192.168.1.9", 1.0) is None
