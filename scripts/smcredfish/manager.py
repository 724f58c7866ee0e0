"""BMC (Manager) identity, clock, network protocols and reset."""

from smcredfish import REDFISH_BASE, REDFISH_MANAGER_RESET, REDFISH_MANAGERS, REDFISH_NETWORK_PROTOCOL
from smcredfish.errors import BMCProtocolError, BMCValidationError

NETWORK_PROTOCOLS = ("HTTP", "HTTPS", "IPMI", "SSH", "SNMP", "VirtualMedia", "KVMIP", "NTP", "Telnet")


class ManagerService:
    def __init__(self, client):
        self.client = client

    def _check(self, resp, what):
        if not 200 <= resp.status_code < 300:
            raise BMCProtocolError(
                f"Failed to {what}: {resp.status_code} - {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )

    def info(self):
        data = self.client.get(REDFISH_MANAGERS)
        return {
            "name": data.get("Name"),
            "model": data.get("Model"),
            "firmware_version": data.get("FirmwareVersion"),
            "uuid": data.get("UUID"),
            "status": (data.get("Status") or {}).get("Health"),
            "datetime": data.get("DateTime"),
            "datetime_local_offset": data.get("DateTimeLocalOffset"),
        }

    def service_info(self):
        """Summarise the Redfish service root."""
        data = self.client.get(REDFISH_BASE)
        return {
            "service_version": data.get("RedfishVersion"),
            "uuid": data.get("UUID"),
            "product": data.get("Product"),
            "vendor": data.get("Vendor"),
            "oem": data.get("Oem"),
        }

    def network_protocols(self):
        """Return {protocol: {"enabled", "port"}} keyed by lower-case name."""
        data = self.client.get(REDFISH_NETWORK_PROTOCOL)
        protocols = {}
        for name in NETWORK_PROTOCOLS:
            proto = data.get(name)
            if proto:
                protocols[name.lower()] = {
                    "enabled": proto.get("ProtocolEnabled"),
                    "port": proto.get("Port"),
                }
        return protocols

    def set_network_protocol(self, protocol, enabled, port=None):
        names = {name.lower(): name for name in NETWORK_PROTOCOLS}
        key = names.get(protocol.lower())
        if key is None:
            raise BMCValidationError(
                f"Unknown protocol {protocol}. Valid: {', '.join(NETWORK_PROTOCOLS)}"
            )
        setting = {"ProtocolEnabled": enabled}
        if port is not None:
            setting["Port"] = port
        resp = self.client.authenticated_request("PATCH", REDFISH_NETWORK_PROTOCOL, body={key: setting})
        self._check(resp, f"configure {key}")
        self.client.log.info(f"{key} protocol configured")
        return True

    def set_datetime(self, value):
        resp = self.client.authenticated_request("PATCH", REDFISH_MANAGERS, body={"DateTime": value})
        self._check(resp, "set datetime")
        self.client.log.info(f"BMC datetime set to {value}")
        return True

    def reset(self):
        """Restart the BMC itself. The session does not survive this."""
        resp = self.client.authenticated_request(
            "POST", REDFISH_MANAGER_RESET, body={"ResetType": "GracefulRestart"}, idempotent=False
        )
        self._check(resp, "reset BMC")
        self.client.log.info("BMC reset initiated")
        return True
