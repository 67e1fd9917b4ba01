"""
UPnP SOAP control client.

Builds SOAP 1.1 action requests against a device's service control URL and
parses the action response or fault. The typed AVTransport and
RenderingControl operations are built on invoke().
"""

import http.client
import logging
import urllib.parse
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from typing import Dict, Iterable, Optional, Tuple, Union

from . import config
from .device import DiscoveredDevice, ServiceCapability
from .errors import ActionFault, CapabilityMissingError, TransportError

logger = logging.getLogger(__name__)

SOAP_ENV = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_ENCODING = "http://schemas.xmlsoap.org/soap/encoding/"

Arguments = Union[Mapping[str, str], Iterable[Tuple[str, str]]]


def _escape_xml(text: str) -> str:
    """Escape XML special characters in a minimal, safe way."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&apos;")
    )


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def build_envelope(service_urn: str, action: str, arguments: Iterable[Tuple[str, str]]) -> str:
    """Return the SOAP envelope for an action, arguments in the given order."""
    args_xml = "".join(f"<{name}>{_escape_xml(str(value))}</{name}>" for name, value in arguments)
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<s:Envelope xmlns:s="{SOAP_ENV}" s:encodingStyle="{SOAP_ENCODING}">'
        "<s:Body>"
        f'<u:{action} xmlns:u="{service_urn}">{args_xml}</u:{action}>'
        "</s:Body>"
        "</s:Envelope>"
    )


def parse_fault(body: bytes) -> Tuple[Optional[str], Optional[str]]:
    """Extract (code, description) from a SOAP fault body.

    Prefers the UPnPError detail (errorCode / errorDescription) and falls
    back to faultcode / faultstring. Returns (None, None) if the body holds
    no Fault element.
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError:
        return None, None
    fault = root.find(".//{*}Fault")
    if fault is None:
        return None, None
    code = fault.findtext(".//{*}errorCode") or fault.findtext("{*}faultcode")
    description = fault.findtext(".//{*}errorDescription") or fault.findtext("{*}faultstring")
    return (code.strip() if code else None), (description.strip() if description else "")


def parse_action_response(body: bytes, action: str) -> Dict[str, str]:
    """Return the output arguments of a successful action response.

    Raises:
        ActionFault: If the body is not XML, contains a Fault, or lacks
            the <u:{action}Response> element
    """
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise ActionFault(action, None, f"Unparseable response: {e}") from e

    if root.find(".//{*}Fault") is not None:
        code, description = parse_fault(body)
        raise ActionFault(action, code, description or "SOAP fault")

    expected = f"{action}Response"
    for elem in root.iter():
        if _local_name(elem.tag) == expected:
            return {_local_name(child.tag): (child.text or "") for child in elem}
    raise ActionFault(action, None, f"No {expected} element in response")


class SOAPClient:
    """Issues UPnP SOAP actions against resolved devices.

    Each call opens its own HTTP connection, so calls may run concurrently
    from different threads. Nothing is retried: UPnP actions are not
    guaranteed to be idempotent.
    """

    def __init__(self, timeout: float = config.HTTP_TIMEOUT):
        self.timeout = timeout

    def capability_for(self, device: DiscoveredDevice, service_name: str) -> ServiceCapability:
        """Return the device's capability for service_name.

        Raises:
            CapabilityMissingError: If the device is unresolved or does not
                offer the service
        """
        if not device.resolved:
            raise CapabilityMissingError(device.id, service_name, "device description not resolved")
        capability = device.find_capability(service_name)
        if capability is None:
            raise CapabilityMissingError(device.id, service_name)
        return capability

    def invoke(
        self,
        device: DiscoveredDevice,
        service_name: str,
        action: str,
        arguments: Arguments = (),
        timeout: Optional[float] = None,
    ) -> Dict[str, str]:
        """Invoke a SOAP action and return its output arguments.

        Args:
            device: Resolved target device
            service_name: "AVTransport" or "RenderingControl"
            action: Action name, e.g. "Play"
            arguments: Input arguments, in the order the service expects
            timeout: Per-call timeout, defaults to the client timeout

        Raises:
            CapabilityMissingError: Before any network I/O, if the service is absent
            ActionFault: The device rejected the action
            TransportError: The HTTP request itself failed
        """
        capability = self.capability_for(device, service_name)
        if isinstance(arguments, Mapping):
            arguments = list(arguments.items())
        else:
            arguments = list(arguments)

        envelope = build_envelope(capability.urn, action, arguments)
        status, reason, body = self._post(
            capability.control_url,
            f'"{capability.urn}#{action}"',
            envelope.encode("utf-8"),
            self.timeout if timeout is None else timeout,
        )
        logger.debug("%s %s -> HTTP %d", action, capability.control_url, status)

        if not 200 <= status < 300:
            code, description = parse_fault(body)
            if code is None and description is None:
                code, description = str(status), reason or f"HTTP {status}"
            raise ActionFault(action, code, description or reason)
        if not body.strip():
            return {}
        return parse_action_response(body, action)

    def _post(self, control_url: str, soap_action: str, body: bytes, timeout: float) -> Tuple[int, str, bytes]:
        parsed = urllib.parse.urlparse(control_url)
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        conn = (
            http.client.HTTPSConnection(parsed.hostname, parsed.port, timeout=timeout)
            if parsed.scheme == "https"
            else http.client.HTTPConnection(parsed.hostname, parsed.port, timeout=timeout)
        )
        headers = {
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPACTION": soap_action,
        }
        try:
            conn.request("POST", path, body=body, headers=headers)
            resp = conn.getresponse()
            data = resp.read()
            return resp.status, resp.reason, data
        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"POST {control_url} failed: {e}") from e
        finally:
            conn.close()
