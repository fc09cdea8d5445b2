"""Command line client for the Mender device management server."""

from .client import AuthenticationError, DeviceNotFoundError, MenderApiError, MenderClient
from .config import CliConfig, ConfigError, load_config
from .version import __version__

__all__ = [
    "AuthenticationError",
    "CliConfig",
    "ConfigError",
    "DeviceNotFoundError",
    "MenderApiError",
    "MenderClient",
    "load_config",
    "__version__",
]
