"""Constants shared across adlstore."""

VERSION = "0.3.0"

API_VERSION = "2015-10-01-preview"  # sent as api-version on every request

DEFAULT_BUFFER_SIZE = 4 * 1024 * 1024  # 4 MiB
MAX_APPEND_SIZE = 4 * 1024 * 1024      # single concurrent append limit

DEFAULT_TIMEOUT = 60.0  # seconds, applied to both connect and read

# Request / response headers
HEADER_CLIENT_REQUEST_ID = "x-ms-client-request-id"
HEADER_CLIENT_LATENCY = "x-ms-adl-client-latency"
HEADER_REQUEST_ID = "x-ms-request-id"
