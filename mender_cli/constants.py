"""Constants used across the mender-cli package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "mender-cli"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME

DEFAULT_SERVER_URL = "https://hosted.mender.io"
DEFAULT_TIMEOUT_SECONDS = 30.0

USERADM_API = "/api/management/v1/useradm"
INVENTORY_API = "/api/management/v1/inventory"
DEPLOYMENTS_API = "/api/management/v1/deployments"

# Upper bound accepted by the inventory service for per_page.
MAX_PAGE_SIZE = 500
DEFAULT_PAGE_SIZE = MAX_PAGE_SIZE

DEFAULT_SERIAL_ATTRIBUTE = "serial_number"
DEFAULT_ARTIFACT_ATTRIBUTE = "artifact_name"
UNKNOWN_ARTIFACT = "unknown"

ENV_SERVER_URL = "MENDER_SERVER_URL"
ENV_TOKEN = "MENDER_TOKEN"
ENV_CERT_FILE = "MENDER_CERT_FILE"
