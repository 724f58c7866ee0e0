"""Boot source override and boot order."""

from smcredfish import REDFISH_BOOT_OPTIONS, REDFISH_SYSTEMS
from smcredfish.errors import BMCValidationError

PERSISTENCE_VALUES = ("Once", "Continuous", "Disabled")


class BootService:
    def __init__(self, client):
        self.client = client

    def options(self):
        boot = self.client.get(REDFISH_SYSTEMS).get("Boot") or {}
        return {
            "boot_source_override_enabled": boot.get("BootSourceOverrideEnabled"),
            "boot_source_override_target": boot.get("BootSourceOverrideTarget"),
            "boot_source_override_mode": boot.get("BootSourceOverrideMode"),
            "allowed_targets": boot.get("BootSourceOverrideTarget@Redfish.AllowableValues"),
            "boot_options": boot.get("BootOptions"),
            "boot_order": boot.get("BootOrder"),
            "uefi_target": boot.get("UefiTargetBootSourceOverride"),
        }

    def set_override(self, target, persistence=None, mode=None):
        """Override the boot source; persistence defaults to Once."""
        allowed = self.options()["allowed_targets"] or []
        if target not in allowed:
            raise BMCValidationError(
                f"Invalid boot target: {target}. Allowed values: {', '.join(allowed) or 'none reported'}"
            )
        enabled = persistence or "Once"
        if enabled not in PERSISTENCE_VALUES:
            raise BMCValidationError(f"Invalid boot persistence: {enabled}")

        self.client.log.info(f"Setting boot override to {target} ({enabled})...")
        boot = {
            "BootSourceOverrideEnabled": enabled,
            "BootSourceOverrideTarget": target,
        }
        if mode:
            boot["BootSourceOverrideMode"] = mode
        self.client.patch(REDFISH_SYSTEMS, {"Boot": boot})
        return True

    def configure(self, persistence=None, mode=None):
        boot = {}
        if persistence:
            boot["BootSourceOverrideEnabled"] = persistence
        if mode:
            boot["BootSourceOverrideMode"] = mode
        if not boot:
            return False
        self.client.patch(REDFISH_SYSTEMS, {"Boot": boot})
        return True

    def clear_override(self):
        self.client.patch(REDFISH_SYSTEMS, {"Boot": {"BootSourceOverrideEnabled": "Disabled"}})
        return True

    def set_order(self, devices):
        self.client.patch(REDFISH_SYSTEMS, {"Boot": {"BootOrder": list(devices)}})
        return True

    def devices(self):
        resp = self.client.authenticated_request("GET", f"{REDFISH_BOOT_OPTIONS}?$expand=*($levels=1)")
        if resp.status_code != 200:
            return []
        data = self.client.parse_json(resp)
        return [
            {
                "id": d.get("Id"),
                "name": d.get("DisplayName") or d.get("Name"),
                "description": d.get("Description"),
                "boot_option_reference": d.get("BootOptionReference"),
                "enabled": d.get("BootOptionEnabled"),
                "uefi_device_path": d.get("UefiDevicePath"),
            }
            for d in data.get("Members") or []
        ]

    def boot_to_pxe(self, persistence=None, mode=None):
        return self.set_override("Pxe", persistence=persistence, mode=mode)

    def boot_to_disk(self, persistence=None, mode=None):
        return self.set_override("Hdd", persistence=persistence, mode=mode)

    def boot_to_cd(self, persistence=None, mode=None):
        return self.set_override("Cd", persistence=persistence, mode=mode)

    def boot_to_usb(self, persistence=None, mode=None):
        return self.set_override("Usb", persistence=persistence, mode=mode)

    def boot_to_bios_setup(self, persistence=None, mode=None):
        return self.set_override("BiosSetup", persistence=persistence, mode=mode)
