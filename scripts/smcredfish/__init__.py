"""smcredfish - Supermicro BMC Redfish client"""

__version__ = "1.0.0"

# Redfish API path constants
REDFISH_BASE = "/redfish/v1"
REDFISH_SYSTEMS = f"{REDFISH_BASE}/Systems/1"
REDFISH_MANAGERS = f"{REDFISH_BASE}/Managers/1"

REDFISH_SESSIONS = f"{REDFISH_BASE}/SessionService/Sessions"
REDFISH_TASKS = f"{REDFISH_BASE}/TaskService/Tasks"

REDFISH_RESET_ACTION = f"{REDFISH_SYSTEMS}/Actions/ComputerSystem.Reset"
REDFISH_BOOT_OPTIONS = f"{REDFISH_SYSTEMS}/BootOptions"
REDFISH_MANAGER_ETHERNET = f"{REDFISH_MANAGERS}/EthernetInterfaces/1"
REDFISH_VIRTUAL_MEDIA = f"{REDFISH_MANAGERS}/VirtualMedia"
REDFISH_LICENSE_MANAGER = f"{REDFISH_MANAGERS}/LicenseManager"
REDFISH_QUERY_LICENSE = f"{REDFISH_LICENSE_MANAGER}/QueryLicense"
REDFISH_NETWORK_PROTOCOL = f"{REDFISH_MANAGERS}/NetworkProtocol"
REDFISH_MANAGER_RESET = f"{REDFISH_MANAGERS}/Actions/Manager.Reset"
REDFISH_SEL = f"{REDFISH_MANAGERS}/LogServices/SEL"
REDFISH_ACCOUNTS = f"{REDFISH_BASE}/AccountService/Accounts"

# Default retry/backoff settings
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 1
DEFAULT_TIMEOUT = 30

# Boot override targets
BOOT_DEVICES = ["None", "Pxe", "Hdd", "Cd", "BiosSetup", "UefiShell", "Usb"]

from smcredfish.config import ClientConfig  # noqa: E402
from smcredfish.errors import (  # noqa: E402
    BMCError,
    BMCConnectionError,
    BMCAuthError,
    BMCProtocolError,
    BMCTimeoutError,
    BMCLicenseError,
    BMCValidationError,
    BMCExhaustedRetriesError,
)
from smcredfish.client import BMCClient  # noqa: E402

__all__ = [
    "BMCClient",
    "ClientConfig",
    "BMCError",
    "BMCConnectionError",
    "BMCAuthError",
    "BMCProtocolError",
    "BMCTimeoutError",
    "BMCLicenseError",
    "BMCValidationError",
    "BMCExhaustedRetriesError",
]
