"""Power control through ComputerSystem.Reset."""

from smcredfish import REDFISH_RESET_ACTION, REDFISH_SYSTEMS
from smcredfish.errors import BMCProtocolError


class PowerService:
    def __init__(self, client):
        self.client = client

    def status(self):
        resp = self.client.authenticated_request("GET", f"{REDFISH_SYSTEMS}?$select=PowerState")
        if resp.status_code != 200:
            raise BMCProtocolError(
                f"Failed to get power status. Status code: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        return self.client.parse_json(resp).get("PowerState")

    def _reset(self, reset_type):
        # Reset actions are never resent after an ambiguous transport failure.
        resp = self.client.authenticated_request(
            "POST", REDFISH_RESET_ACTION, body={"ResetType": reset_type}, idempotent=False
        )
        return 200 <= resp.status_code < 300, resp

    def _reset_or_raise(self, reset_type, fallback=None):
        ok, resp = self._reset(reset_type)
        if ok:
            self.client.log.info(f"{reset_type} command sent")
            return True
        if fallback:
            self.client.log.warning(f"{reset_type} failed ({resp.status_code}), trying {fallback}...")
            ok, resp = self._reset(fallback)
            if ok:
                self.client.log.info(f"{fallback} command sent")
                return True
            reset_type = fallback
        raise BMCProtocolError(
            f"Failed to send {reset_type}: {resp.status_code} - {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )

    def on(self):
        if self.status() == "On":
            self.client.log.info("System is already powered on")
            return True
        return self._reset_or_raise("On")

    def off(self, force=False):
        if self.status() == "Off":
            self.client.log.info("System is already powered off")
            return True
        if force:
            return self._reset_or_raise("ForceOff")
        return self._reset_or_raise("GracefulShutdown", fallback="ForceOff")

    def restart(self, force=False):
        if force:
            return self._reset_or_raise("ForceRestart")
        return self._reset_or_raise("GracefulRestart", fallback="ForceRestart")

    def cycle(self):
        return self._reset_or_raise("PowerCycle")

    def allowed_reset_types(self):
        data = self.client.get(REDFISH_SYSTEMS)
        reset = (data.get("Actions") or {}).get("#ComputerSystem.Reset") or {}
        return reset.get("ResetType@Redfish.AllowableValues") or []
