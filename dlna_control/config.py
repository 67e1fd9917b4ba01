"""
dlna-control - Global configuration.

Every component takes keyword overrides that default to these values.
"""

# ================= SSDP =================
SSDP_MCAST_ADDR = "239.255.255.250"
SSDP_PORT = 1900

# Devices randomize their response delay over MX seconds
SSDP_MX = 3
SSDP_SEARCH_TARGET = "ssdp:all"

# Large enough for any SSDP response seen in the wild
MAX_DATAGRAM_SIZE = 8192

# Outbound multicast hop limit
MULTICAST_TTL = 2

# ================= Discovery Session =================
# Total listen window of one scan (seconds)
SCAN_WINDOW = 5.0

# Per-receive timeout; bounds how long stop() waits for the worker (seconds)
RECEIVE_TIMEOUT = 1.0

# Devices not seen for this long are dropped by the staleness sweep (seconds)
STALE_AGE = 2 * SCAN_WINDOW

# ================= HTTP (description fetch / SOAP control) =================
HTTP_TIMEOUT = 5.0

# ================= UPnP =================
UPNP_SERVICE_URN_PREFIX = "urn:schemas-upnp-org:service:"
AVTRANSPORT = "AVTransport"
RENDERING_CONTROL = "RenderingControl"

# Only these services are tracked as device capabilities
CONTROL_SERVICES = (AVTRANSPORT, RENDERING_CONTROL)

INSTANCE_ID = "0"
MASTER_CHANNEL = "Master"
