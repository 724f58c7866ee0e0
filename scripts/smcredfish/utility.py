"""System event log and BMC user account management."""

from smcredfish import REDFISH_ACCOUNTS, REDFISH_SEL, REDFISH_SESSIONS
from smcredfish.errors import BMCProtocolError, BMCValidationError

EXPAND = "$expand=*($levels=1)"


def _raise_for_status(resp, what):
    if not 200 <= resp.status_code < 300:
        raise BMCProtocolError(
            f"Failed to {what}: {resp.status_code} - {resp.text}",
            status_code=resp.status_code,
            body=resp.text,
        )


class EventLogService:
    """The BMC's System Event Log (SEL)."""

    def __init__(self, client):
        self.client = client

    def entries(self):
        """Return SEL entries, newest first."""
        data = self.client.get(f"{REDFISH_SEL}/Entries?{EXPAND}")
        entries = [
            {
                "id": entry.get("Id"),
                "name": entry.get("Name"),
                "created": entry.get("Created"),
                "severity": entry.get("Severity"),
                "message": entry.get("Message"),
                "message_id": entry.get("MessageId"),
                "sensor_type": entry.get("SensorType"),
                "sensor_number": entry.get("SensorNumber"),
            }
            for entry in data.get("Members") or []
        ]
        return sorted(entries, key=lambda e: e["created"] or "", reverse=True)

    def summary(self, limit=10):
        entries = self.entries()
        severities = {}
        for entry in entries:
            severity = entry["severity"] or "Unknown"
            severities[severity] = severities.get(severity, 0) + 1
        return {
            "total_count": len(entries),
            "severities": severities,
            "entries": entries[:limit],
        }

    def clear(self):
        # ClearLog is never resent after an ambiguous transport failure.
        resp = self.client.authenticated_request(
            "POST", f"{REDFISH_SEL}/Actions/LogService.ClearLog", body={}, idempotent=False
        )
        _raise_for_status(resp, "clear SEL")
        self.client.log.info("SEL cleared")
        return True


class AccountService:
    """Local BMC user accounts and active Redfish sessions."""

    def __init__(self, client):
        self.client = client

    def list_accounts(self):
        data = self.client.get(f"{REDFISH_ACCOUNTS}?{EXPAND}")
        return [
            {
                "id": account.get("Id"),
                "username": account.get("UserName"),
                "enabled": account.get("Enabled"),
                "locked": account.get("Locked"),
                "role_id": account.get("RoleId"),
                "description": account.get("Description"),
            }
            for account in data.get("Members") or []
        ]

    def _find(self, username):
        for account in self.list_accounts():
            if account["username"] == username:
                return account
        raise BMCValidationError(f"Account {username} not found")

    def create_account(self, username, password, role="Administrator"):
        body = {
            "UserName": username,
            "Password": password,
            "RoleId": role,
            "Enabled": True,
        }
        # A resent POST could create the account twice or fail on the duplicate.
        resp = self.client.authenticated_request("POST", REDFISH_ACCOUNTS, body=body, idempotent=False)
        _raise_for_status(resp, "create account")
        self.client.log.info(f"Account {username} created with role {role}")
        return True

    def delete_account(self, username):
        account = self._find(username)
        resp = self.client.authenticated_request("DELETE", f"{REDFISH_ACCOUNTS}/{account['id']}")
        _raise_for_status(resp, "delete account")
        self.client.log.info(f"Account {username} deleted")
        return True

    def update_password(self, username, new_password):
        account = self._find(username)
        resp = self.client.authenticated_request(
            "PATCH", f"{REDFISH_ACCOUNTS}/{account['id']}", body={"Password": new_password}
        )
        _raise_for_status(resp, "update password")
        self.client.log.info(f"Password updated for {username}")
        return True

    def sessions(self):
        data = self.client.get(f"{REDFISH_SESSIONS}?{EXPAND}")
        result = []
        for session in data.get("Members") or []:
            oem = (session.get("Oem") or {}).get("Supermicro") or {}
            result.append({
                "id": session.get("Id"),
                "username": session.get("UserName"),
                "created_time": session.get("CreatedTime"),
                "client_ip": oem.get("ClientIP") or session.get("ClientOriginIPAddress"),
            })
        return result
