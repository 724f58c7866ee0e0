"""BMC network configuration. The only code that moves the client to a new host."""

import time

import requests

from smcredfish import REDFISH_BASE, REDFISH_MANAGER_ETHERNET, REDFISH_SESSIONS
from smcredfish.errors import BMCConnectionError, BMCProtocolError

NETWORK_TASK_TIMEOUT = 60
APPLY_DELAY = 5
PROBE_RETRIES = 10
PROBE_DELAY = 3


class NetworkService:
    def __init__(self, client):
        self.client = client

    def get(self):
        data = self.client.get(REDFISH_MANAGER_ETHERNET)
        ipv4 = (data.get("IPv4Addresses") or [{}])[0]
        return {
            "ipv4": ipv4.get("Address"),
            "mask": ipv4.get("SubnetMask"),
            "gateway": ipv4.get("Gateway"),
            "mode": ipv4.get("AddressOrigin"),
            "mac": data.get("MACAddress"),
            "hostname": data.get("HostName"),
            "fqdn": data.get("FQDN"),
            "dns_servers": data.get("NameServers") or [],
        }

    def configure(self, ipv4=None, mask=None, gateway=None, dns_primary=None,
                  dns_secondary=None, hostname=None, dhcp=False, wait=True):
        """PATCH the BMC's interface.

        With a new static ``ipv4`` and ``wait``, the client follows the BMC
        to the new address once it answers there. Returns False when the
        change was submitted but the new address could not be confirmed.
        """
        if dhcp:
            body = {"DHCPv4": {"DHCPEnabled": True}}
        else:
            body = {}
            if ipv4 and mask:
                body["DHCPv4"] = {"DHCPEnabled": False}
                body["IPv4StaticAddresses"] = [{
                    "Address": ipv4,
                    "SubnetMask": mask,
                    "Gateway": gateway,
                }]
            dns_servers = [s for s in (dns_primary, dns_secondary) if s]
            if dns_servers:
                body["StaticNameServers"] = dns_servers
            if hostname:
                body["HostName"] = hostname
        if not body:
            return False

        resp = self.client.authenticated_request("PATCH", REDFISH_MANAGER_ETHERNET, body=body)
        if not 200 <= resp.status_code < 300:
            raise BMCProtocolError(
                f"Failed to configure BMC network: {resp.status_code} - {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
        self.client.log.info("BMC network configuration submitted")

        moving = bool(ipv4 and not dhcp and ipv4 != self.client.config.host)
        if not (moving and wait):
            if moving:
                self.client.log.warning("BMC may restart network services; the connection may be lost")
            return True

        if resp.status_code == 202:
            try:
                result = self.client.tasks.wait_for_completion(resp, timeout=NETWORK_TASK_TIMEOUT)
                if not result.success:
                    self.client.log.warning(f"Network task did not report success: {result.error}")
            except BMCConnectionError as e:
                # The old address usually stops answering mid-change
                self.client.log.debug(f"Connection lost while monitoring network task: {e}")
        else:
            time.sleep(APPLY_DELAY)

        if not self._probe(ipv4):
            self.client.log.warning(f"Cannot reach BMC on {ipv4}; it may still be applying changes")
            return False

        self.client.log.info(f"BMC reachable on {ipv4}")
        self.client.config.host = ipv4
        return True

    def _probe(self, new_host):
        config = self.client.config
        scheme = "https" if config.use_ssl else "http"
        base = f"{scheme}://{new_host}:{config.port}"
        http = self.client.http
        for attempt in range(1, PROBE_RETRIES + 1):
            try:
                root = http.get(f"{base}{REDFISH_BASE}/", verify=config.verify_ssl, timeout=config.timeout)
                if root.status_code in (200, 401):
                    login = http.post(
                        f"{base}{REDFISH_SESSIONS}",
                        json={"UserName": config.username, "Password": config.password},
                        verify=config.verify_ssl,
                        timeout=config.timeout,
                    )
                    if 200 <= login.status_code <= 204:
                        token = login.headers.get("X-Auth-Token")
                        location = login.headers.get("Location")
                        if token and location:
                            http.delete(
                                f"{base}{location}" if location.startswith("/") else location,
                                headers={"X-Auth-Token": token},
                                verify=config.verify_ssl,
                                timeout=config.timeout,
                            )
                        return True
            except requests.RequestException as e:
                self.client.log.debug(f"Probe {attempt}/{PROBE_RETRIES} of {new_host} failed: {e}")
            if attempt < PROBE_RETRIES:
                time.sleep(PROBE_DELAY)
        return False
