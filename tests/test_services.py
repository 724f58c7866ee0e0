import json
import unittest
from unittest.mock import patch

import requests

from redfish_fixtures import make_client, make_response, license_query

from smcredfish.errors import BMCConnectionError, BMCProtocolError, BMCValidationError

SYSTEM = "/redfish/v1/Systems/1"
RESET = "/redfish/v1/Systems/1/Actions/ComputerSystem.Reset"

SYSTEM_DATA = {
    "PowerState": "On",
    "Boot": {
        "BootSourceOverrideEnabled": "Disabled",
        "BootSourceOverrideTarget": "None",
        "BootSourceOverrideMode": "UEFI",
        "BootSourceOverrideTarget@Redfish.AllowableValues": ["None", "Pxe", "Hdd", "Cd", "BiosSetup"],
        "BootOrder": ["Boot0001", "Boot0002"],
    },
    "Actions": {
        "#ComputerSystem.Reset": {
            "ResetType@Redfish.AllowableValues": ["On", "ForceOff", "GracefulShutdown", "GracefulRestart"],
        },
    },
}


class ServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.client, self.request, self.post, self.delete = make_client(direct_mode=True)
        self.addCleanup(self.client.cleanup)

    def calls(self, method=None):
        return [
            (c.args[0], c.args[1].split(":443", 1)[1], c.kwargs.get("json"))
            for c in self.request.call_args_list
            if method is None or c.args[0] == method
        ]


class TestPowerService(ServiceTestCase):

    def test_status_uses_select(self):
        self.request.return_value = make_response(200, {"PowerState": "Off"})
        self.assertEqual(self.client.power.status(), "Off")
        self.assertTrue(self.calls()[0][1].endswith("?$select=PowerState"))

    def test_on_skips_reset_when_already_on(self):
        self.request.return_value = make_response(200, {"PowerState": "On"})
        self.assertTrue(self.client.power.on())
        self.assertEqual(self.calls("POST"), [])

    def test_graceful_shutdown_falls_back_to_force(self):
        self.request.side_effect = [
            make_response(200, {"PowerState": "On"}),
            make_response(400, text="not supported"),
            make_response(204),
        ]

        self.assertTrue(self.client.power.off())

        posts = self.calls("POST")
        self.assertEqual([p[2]["ResetType"] for p in posts], ["GracefulShutdown", "ForceOff"])
        self.assertEqual(posts[0][1], RESET)

    def test_failed_reset_raises(self):
        self.request.return_value = make_response(500, text="busy")
        with self.assertRaises(BMCProtocolError):
            self.client.power.cycle()

    def test_reset_not_resent_after_read_timeout(self):
        self.request.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(BMCConnectionError):
            self.client.power.restart(force=True)
        self.assertEqual(self.request.call_count, 1)

    def test_allowed_reset_types(self):
        self.request.return_value = make_response(200, SYSTEM_DATA)
        self.assertIn("GracefulRestart", self.client.power.allowed_reset_types())


class TestBootService(ServiceTestCase):

    def test_options(self):
        self.request.return_value = make_response(200, SYSTEM_DATA)
        options = self.client.boot.options()
        self.assertEqual(options["boot_order"], ["Boot0001", "Boot0002"])
        self.assertIn("Cd", options["allowed_targets"])

    def test_set_override(self):
        self.request.side_effect = [make_response(200, SYSTEM_DATA), make_response(204)]

        self.client.boot.boot_to_cd()

        method, path, body = self.calls()[1]
        self.assertEqual((method, path), ("PATCH", SYSTEM))
        self.assertEqual(body, {"Boot": {"BootSourceOverrideEnabled": "Once", "BootSourceOverrideTarget": "Cd"}})

    def test_set_override_rejects_unknown_target(self):
        self.request.return_value = make_response(200, SYSTEM_DATA)
        with self.assertRaises(BMCValidationError):
            self.client.boot.boot_to_usb()
        self.assertEqual(self.calls("PATCH"), [])

    def test_set_override_rejects_bad_persistence(self):
        self.request.return_value = make_response(200, SYSTEM_DATA)
        with self.assertRaises(BMCValidationError):
            self.client.boot.set_override("Pxe", persistence="Forever")

    def test_devices(self):
        self.request.return_value = make_response(200, {
            "Members": [{"Id": "Boot0001", "DisplayName": "UEFI PXE", "BootOptionEnabled": True}],
        })
        devices = self.client.boot.devices()
        self.assertEqual(devices[0]["name"], "UEFI PXE")

    def test_set_order(self):
        self.request.return_value = make_response(204)
        self.client.boot.set_order(("Boot0002", "Boot0001"))
        self.assertEqual(self.calls()[0][2], {"Boot": {"BootOrder": ["Boot0002", "Boot0001"]}})


class TestLicenseService(ServiceTestCase):

    def test_virtual_media_license_present(self):
        self.request.return_value = make_response(200, license_query("SFT-DCMS-SINGLE"))
        status = self.client.license.check_virtual_media_license()
        self.assertTrue(status.available)
        self.assertEqual(status.licenses, ["SFT-DCMS-SINGLE"])

    def test_virtual_media_license_absent(self):
        self.request.return_value = make_response(200, license_query("SFT-DCMS-SVC-KEY"))
        status = self.client.license.check_virtual_media_license()
        self.assertIs(status.available, False)
        self.assertIn("SFT-OOB-LIC", status.message)

    def test_license_query_failure_is_inconclusive(self):
        self.request.return_value = make_response(404, text="not found")
        self.assertIsNone(self.client.license.check_virtual_media_license().available)

    def test_license_query_connection_failure_is_inconclusive(self):
        self.request.side_effect = requests.ConnectionError("down")
        with patch('smcredfish.client.time.sleep'):
            status = self.client.license.check_virtual_media_license()
        self.assertIsNone(status.available)

    def test_list_licenses(self):
        self.request.return_value = make_response(200, license_query("SFT-OOB-LIC", "SFT-DCMS-SVC-KEY"))
        licenses = self.client.license.list_licenses()
        self.assertEqual([lic["name"] for lic in licenses], ["SFT-OOB-LIC", "SFT-DCMS-SVC-KEY"])

    def test_malformed_entries_skipped(self):
        data = {"Licenses": ["{not json", json.dumps({"ProductKey": {"Node": {"LicenseName": "SFT-OOB-LIC"}}})]}
        self.request.return_value = make_response(200, data)
        self.assertTrue(self.client.license.check_virtual_media_license().available)

    def test_activate_license(self):
        self.request.return_value = make_response(200, {})
        self.assertTrue(self.client.license.activate_license("KEY-123"))
        self.assertEqual(self.calls("POST")[0][2], {"LicenseKey": "KEY-123"})


@patch('smcredfish.network.time.sleep')
class TestNetworkService(ServiceTestCase):

    def test_dhcp(self, mock_sleep):
        self.request.return_value = make_response(204)
        self.assertTrue(self.client.network.configure(dhcp=True))
        self.assertEqual(self.calls("PATCH")[0][2], {"DHCPv4": {"DHCPEnabled": True}})

    def test_nothing_to_change(self, mock_sleep):
        self.assertFalse(self.client.network.configure())
        self.request.assert_not_called()

    def test_static_address_moves_client_once_reachable(self, mock_sleep):
        self.request.return_value = make_response(204)
        self.client.http.get.return_value = make_response(200, {})

        ok = self.client.network.configure(ipv4="10.0.0.9", mask="255.255.255.0", gateway="10.0.0.254")

        self.assertTrue(ok)
        self.assertEqual(self.client.config.host, "10.0.0.9")
        self.assertTrue(self.client.http.get.call_args.args[0].startswith("https://10.0.0.9:443"))
        self.delete.assert_called_once()

    def test_static_address_unreachable_keeps_host(self, mock_sleep):
        self.request.return_value = make_response(204)
        self.client.http.get.side_effect = requests.ConnectionError("no route")

        ok = self.client.network.configure(ipv4="10.0.0.9", mask="255.255.255.0")

        self.assertFalse(ok)
        self.assertEqual(self.client.config.host, "10.0.0.1")

    def test_get(self, mock_sleep):
        self.request.return_value = make_response(200, {
            "IPv4Addresses": [{"Address": "10.0.0.1", "SubnetMask": "255.255.255.0", "AddressOrigin": "Static"}],
            "MACAddress": "aa:bb:cc:dd:ee:ff",
        })
        self.assertEqual(self.client.network.get()["ipv4"], "10.0.0.1")


SEL = "/redfish/v1/Managers/1/LogServices/SEL"
ACCOUNTS = "/redfish/v1/AccountService/Accounts"

SEL_ENTRIES = {
    "Members": [
        {"Id": "1", "Created": "2024-01-01T10:00:00Z", "Severity": "OK", "Message": "Power on"},
        {"Id": "2", "Created": "2024-03-01T10:00:00Z", "Severity": "Critical", "Message": "Fan failure"},
        {"Id": "3", "Created": "2024-02-01T10:00:00Z", "Severity": "Warning", "Message": "Temp high"},
        {"Id": "4", "Severity": "OK", "Message": "No timestamp"},
    ],
}

ACCOUNT_LIST = {
    "Members": [
        {"Id": "2", "UserName": "ADMIN", "Enabled": True, "RoleId": "Administrator"},
        {"Id": "3", "UserName": "ops", "Enabled": True, "RoleId": "Operator"},
    ],
}


class TestEventLogService(ServiceTestCase):

    def test_entries_newest_first(self):
        self.request.return_value = make_response(200, SEL_ENTRIES)

        entries = self.client.sel.entries()

        self.assertEqual([e["id"] for e in entries], ["2", "3", "1", "4"])
        self.assertEqual(entries[0]["message"], "Fan failure")
        self.assertTrue(self.calls()[0][1].startswith(f"{SEL}/Entries?$expand="))

    def test_summary_counts_severities(self):
        self.request.return_value = make_response(200, SEL_ENTRIES)

        summary = self.client.sel.summary(limit=2)

        self.assertEqual(summary["total_count"], 4)
        self.assertEqual(summary["severities"], {"OK": 2, "Critical": 1, "Warning": 1})
        self.assertEqual([e["id"] for e in summary["entries"]], ["2", "3"])

    def test_clear_posts_clear_log(self):
        self.request.return_value = make_response(204)
        self.assertTrue(self.client.sel.clear())
        self.assertEqual(self.calls("POST"), [("POST", f"{SEL}/Actions/LogService.ClearLog", {})])

    def test_clear_not_resent_after_read_timeout(self):
        self.request.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(BMCConnectionError):
            self.client.sel.clear()
        self.assertEqual(self.request.call_count, 1)

    def test_clear_failure_raises(self):
        self.request.return_value = make_response(500, text="log busy")
        with self.assertRaises(BMCProtocolError) as ctx:
            self.client.sel.clear()
        self.assertIn("log busy", str(ctx.exception))


class TestAccountService(ServiceTestCase):

    def test_list_accounts(self):
        self.request.return_value = make_response(200, ACCOUNT_LIST)
        accounts = self.client.accounts.list_accounts()
        self.assertEqual([(a["id"], a["username"], a["role_id"]) for a in accounts],
                         [("2", "ADMIN", "Administrator"), ("3", "ops", "Operator")])

    def test_create_account(self):
        self.request.return_value = make_response(201, {"Id": "4"})

        self.assertTrue(self.client.accounts.create_account("deploy", "s3cret", role="Operator"))

        self.assertEqual(self.calls("POST"), [("POST", ACCOUNTS, {
            "UserName": "deploy", "Password": "s3cret", "RoleId": "Operator", "Enabled": True,
        })])

    def test_create_account_not_resent_after_read_timeout(self):
        self.request.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(BMCConnectionError):
            self.client.accounts.create_account("deploy", "s3cret")
        self.assertEqual(self.request.call_count, 1)

    def test_update_password_targets_account_id(self):
        self.request.side_effect = [make_response(200, ACCOUNT_LIST), make_response(200, {})]

        self.assertTrue(self.client.accounts.update_password("ops", "n3w"))

        self.assertEqual(self.calls("PATCH"), [("PATCH", f"{ACCOUNTS}/3", {"Password": "n3w"})])

    def test_delete_account(self):
        self.request.side_effect = [make_response(200, ACCOUNT_LIST), make_response(204)]
        self.assertTrue(self.client.accounts.delete_account("ops"))
        self.assertEqual(self.calls("DELETE"), [("DELETE", f"{ACCOUNTS}/3", None)])

    def test_unknown_account_raises_validation_error(self):
        self.request.return_value = make_response(200, ACCOUNT_LIST)
        with self.assertRaises(BMCValidationError):
            self.client.accounts.delete_account("nobody")
        self.assertEqual(self.calls("DELETE"), [])

    def test_sessions_client_ip(self):
        self.request.return_value = make_response(200, {"Members": [
            {"Id": "1", "UserName": "ADMIN", "Oem": {"Supermicro": {"ClientIP": "10.0.0.5"}},
             "ClientOriginIPAddress": "10.0.0.9"},
            {"Id": "2", "UserName": "ops", "Oem": {"Supermicro": None}, "ClientOriginIPAddress": "10.0.0.6"},
        ]})

        sessions = self.client.accounts.sessions()

        self.assertEqual([s["client_ip"] for s in sessions], ["10.0.0.5", "10.0.0.6"])


class TestManagerService(ServiceTestCase):

    def test_info(self):
        self.request.return_value = make_response(200, {
            "Name": "Manager", "Model": "X12", "FirmwareVersion": "01.02.03",
            "Status": {"Health": "OK"}, "DateTime": "2024-01-01T00:00:00+00:00",
        })
        info = self.client.manager.info()
        self.assertEqual(info["firmware_version"], "01.02.03")
        self.assertEqual(info["status"], "OK")

    def test_service_info(self):
        self.request.return_value = make_response(200, {"RedfishVersion": "1.11.0", "Vendor": "Supermicro"})
        info = self.client.manager.service_info()
        self.assertEqual(info["service_version"], "1.11.0")
        self.assertEqual(info["vendor"], "Supermicro")

    def test_network_protocols(self):
        self.request.return_value = make_response(200, {
            "HTTPS": {"ProtocolEnabled": True, "Port": 443},
            "IPMI": {"ProtocolEnabled": False, "Port": 623},
            "Name": "Manager Network Service",
        })

        protocols = self.client.manager.network_protocols()

        self.assertEqual(protocols, {
            "https": {"enabled": True, "port": 443},
            "ipmi": {"enabled": False, "port": 623},
        })

    def test_set_network_protocol_uses_canonical_key(self):
        self.request.return_value = make_response(200, {})

        self.client.manager.set_network_protocol("ssh", False, port=2222)

        self.assertEqual(self.calls("PATCH"), [
            ("PATCH", "/redfish/v1/Managers/1/NetworkProtocol", {"SSH": {"ProtocolEnabled": False, "Port": 2222}}),
        ])

    def test_set_unknown_protocol_raises(self):
        with self.assertRaises(BMCValidationError):
            self.client.manager.set_network_protocol("gopher", True)
        self.assertEqual(self.request.call_count, 0)

    def test_set_datetime(self):
        self.request.return_value = make_response(204)
        self.client.manager.set_datetime("2024-05-01T12:00:00+00:00")
        self.assertEqual(self.calls("PATCH")[0][2], {"DateTime": "2024-05-01T12:00:00+00:00"})

    def test_reset_sends_graceful_restart_once(self):
        self.request.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(BMCConnectionError):
            self.client.manager.reset()
        self.assertEqual(self.calls("POST"), [
            ("POST", "/redfish/v1/Managers/1/Actions/Manager.Reset", {"ResetType": "GracefulRestart"}),
        ])

    def test_reset_failure_raises(self):
        self.request.return_value = make_response(503, text="unavailable")
        with self.assertRaises(BMCProtocolError) as ctx:
            self.client.manager.reset()
        self.assertEqual(ctx.exception.status_code, 503)


if __name__ == '__main__':
    unittest.main()
