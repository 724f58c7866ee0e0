"""Supermicro license queries (virtual media over HTTP needs one)."""

import json
from dataclasses import dataclass, field
from typing import List, Optional

from smcredfish import REDFISH_LICENSE_MANAGER, REDFISH_QUERY_LICENSE
from smcredfish.errors import BMCConnectionError

# Either of these enables HTTP/HTTPS virtual media
VIRTUAL_MEDIA_LICENSES = ("SFT-OOB-LIC", "SFT-DCMS-SINGLE")


@dataclass
class LicenseStatus:
    """available is None when the BMC could not be asked."""

    available: Optional[bool]
    licenses: List[str] = field(default_factory=list)
    message: str = ""

    def to_dict(self):
        return {
            "available": self.available,
            "licenses": list(self.licenses),
            "message": self.message,
        }


def _license_nodes(data):
    # Each entry of "Licenses" is itself a JSON document encoded as a string.
    for entry in data.get("Licenses") or []:
        if isinstance(entry, str):
            try:
                entry = json.loads(entry)
            except ValueError:
                continue
        if not isinstance(entry, dict):
            continue
        node = (entry.get("ProductKey") or {}).get("Node")
        if isinstance(node, dict):
            yield node


class LicenseService:
    def __init__(self, client):
        self.client = client

    def _query(self):
        try:
            resp = self.client.authenticated_request("GET", REDFISH_QUERY_LICENSE)
        except BMCConnectionError as e:
            self.client.log.warning(f"Unable to query license status: {e}")
            return None
        if resp.status_code != 200:
            self.client.log.warning(f"Unable to query license status: HTTP {resp.status_code}")
            return None
        try:
            data = resp.json()
        except ValueError as e:
            self.client.log.warning(f"Failed to parse license response: {e}")
            return None
        return data if isinstance(data, dict) else None

    def check_virtual_media_license(self):
        """Report whether HTTP/HTTPS virtual media is licensed on this BMC."""
        data = self._query()
        if data is None:
            return LicenseStatus(available=None, message="Unable to query license status")

        found = [node["LicenseName"] for node in _license_nodes(data) if node.get("LicenseName")]
        available = any(name in VIRTUAL_MEDIA_LICENSES for name in found)
        required = " or ".join(VIRTUAL_MEDIA_LICENSES)
        if available:
            message = f"Virtual media license present: {', '.join(found)}"
        elif not found:
            message = f"No licenses found. Virtual media requires {required}"
        else:
            message = f"Virtual media requires {required}. Found: {', '.join(found)}"
        return LicenseStatus(available=available, licenses=found, message=message)

    def list_licenses(self):
        data = self._query()
        if data is None:
            return []
        return [
            {
                "id": node.get("LicenseID"),
                "name": node.get("LicenseName"),
                "created": node.get("CreateDate"),
            }
            for node in _license_nodes(data)
        ]

    def activate_license(self, license_key):
        resp = self.client.authenticated_request(
            "POST",
            f"{REDFISH_LICENSE_MANAGER}/Actions/LicenseManager.ActivateLicense",
            body={"LicenseKey": license_key},
        )
        if 200 <= resp.status_code < 300:
            self.client.log.info("License activated")
            return True
        self.client.log.error(f"Failed to activate license: HTTP {resp.status_code}")
        return False

    def clear_license(self, license_id):
        resp = self.client.authenticated_request(
            "POST",
            f"{REDFISH_LICENSE_MANAGER}/Actions/LicenseManager.ClearLicense",
            body={"LicenseID": license_id},
        )
        if 200 <= resp.status_code < 300:
            self.client.log.info("License cleared")
            return True
        self.client.log.error(f"Failed to clear license: HTTP {resp.status_code}")
        return False
