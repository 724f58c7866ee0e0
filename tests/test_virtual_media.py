import unittest
from unittest.mock import patch, MagicMock

import requests

from redfish_fixtures import make_client, make_response, vm_slot, vm_collection, license_query, task_document

from smcredfish.errors import BMCExhaustedRetriesError, BMCLicenseError, BMCProtocolError, BMCValidationError
from smcredfish.virtual_media import (
    DUMMY_IMAGE_URL,
    MAX_INSERT_ATTEMPTS,
    ConnectionState,
    VirtualMediaDevice,
    is_inserted,
)

VM_BASE = "/redfish/v1/Managers/1/VirtualMedia"
LICENSE_URI = "/redfish/v1/Managers/1/LicenseManager/QueryLicense"
ISO = "http://10.0.0.5/images/install.iso"


class FakeVirtualMediaBMC:
    """Routes stubbed requests by path and keeps slot state between calls."""

    def __init__(self, slots, licenses=("SFT-OOB-LIC",), insert_status=200, connect_on_insert=True):
        self.slots = {s["Id"]: s for s in slots}
        self.licenses = licenses
        self.insert_status = insert_status
        self.connect_on_insert = connect_on_insert
        self.posts = []

    def __call__(self, method, url, **kwargs):
        path = url.split(":443", 1)[1]
        if method == "GET":
            return self._get(path)
        body = kwargs.get("json")
        self.posts.append((path, body))
        slot_id = path.split("/")[-3]
        slot = self.slots[slot_id]
        if path.endswith("EjectMedia") or (body and body.get("Image") == DUMMY_IMAGE_URL):
            slot.update({"Inserted": False, "Image": None, "ConnectedVia": "NotConnected"})
            return make_response(200, {})
        status = self.insert_status.pop(0) if isinstance(self.insert_status, list) else self.insert_status
        if callable(status):
            return status()
        if 200 <= status < 300:
            slot.update({
                "Inserted": True,
                "Image": body["Image"],
                "ConnectedVia": "URI" if self.connect_on_insert else "NotConnected",
            })
            return make_response(status, {})
        if status == 400:
            return make_response(400, text="Media is already inserted")
        return make_response(status, text="Internal error")

    def _get(self, path):
        if path == LICENSE_URI:
            if self.licenses is None:
                return make_response(500, text="unavailable")
            return make_response(200, license_query(*self.licenses))
        if path == VM_BASE:
            return make_response(200, vm_collection(*self.slots))
        if path.startswith(VM_BASE + "/"):
            return make_response(200, self.slots[path.rsplit("/", 1)[1]])
        if path.startswith("/redfish/v1/TaskService/Tasks/"):
            return make_response(200, task_document("Completed"))
        return make_response(404, {})

    def insert_posts(self):
        return [(p, b) for p, b in self.posts
                if p.endswith("InsertMedia") and b.get("Image") != DUMMY_IMAGE_URL]

    def get_paths(self, request):
        return [c.args[1].split(":443", 1)[1] for c in request.call_args_list if c.args[0] == "GET"]


class TestInsertionSignals(unittest.TestCase):

    def test_any_signal_counts(self):
        self.assertTrue(is_inserted({"Inserted": True}))
        self.assertTrue(is_inserted({"Inserted": False, "Image": ISO}))
        self.assertTrue(is_inserted({"ConnectedVia": "URI"}))
        self.assertTrue(is_inserted({"ConnecteVia": "Applet"}))
        self.assertTrue(is_inserted({"ImageName": "install.iso"}))

    def test_empty_slot(self):
        self.assertFalse(is_inserted({"Inserted": False, "ConnectedVia": "NotConnected"}))
        self.assertFalse(is_inserted({}))

    def test_dummy_image_means_empty(self):
        self.assertFalse(is_inserted({"Inserted": True, "Image": DUMMY_IMAGE_URL, "ConnectedVia": "URI"}))

    def test_connection_state(self):
        self.assertIs(ConnectionState.parse("URI"), ConnectionState.URI)
        self.assertIs(ConnectionState.parse("NotConnected"), ConnectionState.NOT_CONNECTED)
        self.assertIs(ConnectionState.parse(None), ConnectionState.NOT_CONNECTED)
        self.assertIs(ConnectionState.parse("Applet"), ConnectionState.OTHER)

    def test_device_from_redfish(self):
        device = VirtualMediaDevice.from_redfish(
            vm_slot("2", image=ISO, connected_via="URI", name="Virtual Removable Media", misspelled=True)
        )
        self.assertEqual(device.name, "Virtual Removable Media (2)")
        self.assertTrue(device.inserted)
        self.assertFalse(device.reported_inserted)
        self.assertTrue(device.mounted)
        self.assertTrue(device.insert_action_path.endswith("/2/Actions/VirtualMedia.InsertMedia"))
        self.assertEqual(device.to_dict()["media_types"], ["CD", "DVD"])


@patch('smcredfish.tasks.time.sleep')
@patch('smcredfish.virtual_media.time.sleep')
class TestVirtualMediaManager(unittest.TestCase):

    def setUp(self):
        self.client, self.request, _, _ = make_client(direct_mode=True)
        self.addCleanup(self.client.cleanup)
        self.vm = self.client.virtual_media

    def _bmc(self, slots=None, **kwargs):
        bmc = FakeVirtualMediaBMC(slots or [vm_slot("1")], **kwargs)
        self.request.side_effect = bmc
        return bmc

    def test_status_lists_devices(self, vm_sleep, task_sleep):
        self._bmc([vm_slot("1"), vm_slot("2", image=ISO, connected_via="URI")])
        devices = self.vm.status()
        self.assertEqual([d.device_id for d in devices], ["1", "2"])
        self.assertFalse(devices[0].inserted)
        self.assertTrue(devices[1].mounted)

    def test_insert_ejects_first_and_verifies(self, vm_sleep, task_sleep):
        bmc = self._bmc()

        self.assertTrue(self.vm.insert_media(ISO))

        eject_path, eject_body = bmc.posts[0]
        self.assertTrue(eject_path.endswith("InsertMedia"))
        self.assertEqual(eject_body["Image"], DUMMY_IMAGE_URL)
        self.assertFalse(eject_body["Inserted"])
        insert_path, insert_body = bmc.posts[1]
        self.assertEqual(insert_body["Image"], ISO)
        self.assertTrue(insert_body["Inserted"])
        self.assertEqual(insert_body["TransferProtocolType"], "HTTP")

    def test_eject_uses_eject_action_when_reported_inserted(self, vm_sleep, task_sleep):
        bmc = self._bmc([vm_slot("1", inserted=True, image=ISO, connected_via="URI")])

        self.assertTrue(self.vm.eject_media())

        self.assertEqual(len(bmc.posts), 1)
        self.assertTrue(bmc.posts[0][0].endswith("EjectMedia"))

    def test_eject_nothing_mounted(self, vm_sleep, task_sleep):
        bmc = self._bmc()
        self.assertFalse(self.vm.eject_media())
        self.assertEqual(bmc.posts, [])

    def test_missing_license_fails_before_any_mutation(self, vm_sleep, task_sleep):
        bmc = self._bmc(licenses=("SFT-DCMS-SVC-KEY",))

        with self.assertRaises(BMCLicenseError):
            self.vm.insert_media(ISO)
        self.assertEqual(bmc.posts, [])

    def test_unknown_license_status_proceeds(self, vm_sleep, task_sleep):
        self._bmc(licenses=None)
        self.assertTrue(self.vm.insert_media(ISO))

    def test_nfs_media_skips_license_check(self, vm_sleep, task_sleep):
        bmc = self._bmc(licenses=("SFT-DCMS-SVC-KEY",))
        self.assertTrue(self.vm.insert_media("nfs://10.0.0.5/images/install.iso"))
        self.assertNotIn(LICENSE_URI, bmc.get_paths(self.request))

    def test_rejects_unsupported_url(self, vm_sleep, task_sleep):
        self._bmc()
        with self.assertRaises(BMCValidationError):
            self.vm.insert_media("ftp://10.0.0.5/install.iso")
        with self.assertRaises(BMCValidationError):
            self.vm.insert_media("  ")
        self.request.assert_not_called()

    def test_unknown_device(self, vm_sleep, task_sleep):
        self._bmc()
        with self.assertRaises(BMCValidationError):
            self.vm.insert_media(ISO, device="9")

    def test_eject_unknown_device(self, vm_sleep, task_sleep):
        bmc = self._bmc()
        with self.assertRaises(BMCValidationError):
            self.vm.eject_media(device="9")
        self.assertEqual(bmc.posts, [])

    def test_eject_timeout_during_insert_is_retried(self, vm_sleep, task_sleep):
        bmc = FakeVirtualMediaBMC([vm_slot("1", inserted=True, image=ISO, connected_via="URI")])
        timeouts = [requests.exceptions.ReadTimeout("slow")]

        def router(method, url, **kwargs):
            if method == "POST" and url.endswith("EjectMedia") and timeouts:
                raise timeouts.pop()
            return bmc(method, url, **kwargs)

        self.request.side_effect = router

        with patch('smcredfish.client.time.sleep'):
            self.assertTrue(self.vm.insert_media(ISO))

        self.assertEqual(timeouts, [])
        self.assertEqual(len(bmc.insert_posts()), 1)

    def test_dummy_eject_is_resent_after_read_timeout(self, vm_sleep, task_sleep):
        bmc = self._bmc()
        timeouts = [requests.exceptions.ReadTimeout("slow")]

        def router(method, url, **kwargs):
            body = kwargs.get("json") or {}
            if method == "POST" and body.get("Image") == DUMMY_IMAGE_URL and timeouts:
                raise timeouts.pop()
            return bmc(method, url, **kwargs)

        self.request.side_effect = router

        with patch('smcredfish.client.time.sleep'):
            self.assertTrue(self.vm.insert_media(ISO))

        self.assertEqual(timeouts, [])
        self.assertEqual(len(bmc.insert_posts()), 1)

    def test_auto_selects_cd_slot(self, vm_sleep, task_sleep):
        bmc = self._bmc([
            vm_slot("USB1", media_types=("USBStick",), name="Virtual Removable Media"),
            vm_slot("CD1", media_types=("CD", "DVD")),
        ])

        self.assertEqual(self.vm.find_best_device(), "CD1")
        self.assertTrue(self.vm.insert_media(ISO))
        self.assertIn("/CD1/", bmc.insert_posts()[0][0])

    def test_auto_select_falls_back_to_removable_then_first(self, vm_sleep, task_sleep):
        self._bmc([vm_slot("A", media_types=("Floppy",)), vm_slot("B", media_types=("Removable",))])
        self.assertEqual(self.vm.find_best_device(), "B")
        self._bmc([vm_slot("A", media_types=()), vm_slot("B", media_types=())])
        self.assertEqual(self.vm.find_best_device(), "A")

    def test_already_inserted_is_retried(self, vm_sleep, task_sleep):
        bmc = self._bmc(insert_status=[400, 200])
        self.assertTrue(self.vm.insert_media(ISO))
        self.assertEqual(len(bmc.insert_posts()), 2)

    def test_attempts_are_bounded(self, vm_sleep, task_sleep):
        bmc = self._bmc(insert_status=500)

        with self.assertRaises(BMCExhaustedRetriesError) as ctx:
            self.vm.insert_media(ISO)

        self.assertEqual(ctx.exception.attempts, MAX_INSERT_ATTEMPTS)
        self.assertEqual(len(bmc.insert_posts()), MAX_INSERT_ATTEMPTS)
        self.assertIn("Internal error", str(ctx.exception))
        self.assertIn("HTTP 500", str(ctx.exception))
        self.assertIsInstance(ctx.exception.__cause__, BMCProtocolError)
        self.assertEqual(ctx.exception.__cause__.status_code, 500)

    def test_inserted_but_not_connected(self, vm_sleep, task_sleep):
        self._bmc(connect_on_insert=False)
        self.assertFalse(self.vm.insert_media(ISO))

    def test_async_insert_polls_task(self, vm_sleep, task_sleep):
        bmc = FakeVirtualMediaBMC([vm_slot("1")])
        sync_insert = bmc.__call__

        def router(method, url, **kwargs):
            resp = sync_insert(method, url, **kwargs)
            body = kwargs.get("json") or {}
            if method == "POST" and body.get("Inserted"):
                return make_response(202, {"@odata.id": "/redfish/v1/TaskService/Tasks/3"})
            return resp

        self.request.side_effect = router

        self.assertTrue(self.vm.insert_media(ISO))
        self.assertIn("/redfish/v1/TaskService/Tasks/3", bmc.get_paths(self.request))

    def test_unmount_all(self, vm_sleep, task_sleep):
        bmc = self._bmc([
            vm_slot("1", inserted=True, image=ISO, connected_via="URI"),
            vm_slot("2"),
            vm_slot("3", image=ISO, connected_via="URI"),
        ])

        self.assertTrue(self.vm.unmount_all())

        posted = [p for p, _ in bmc.posts]
        self.assertEqual(len(posted), 2)
        self.assertTrue(posted[0].endswith("/1/Actions/VirtualMedia.EjectMedia"))
        self.assertTrue(posted[1].endswith("/3/Actions/VirtualMedia.InsertMedia"))

    def test_mount_iso_and_boot(self, vm_sleep, task_sleep):
        self._bmc()
        self.client.boot = MagicMock()

        self.assertTrue(self.vm.mount_iso_and_boot(ISO))
        self.client.boot.boot_to_cd.assert_called_once_with()

    def test_mount_iso_and_boot_stops_when_mount_fails(self, vm_sleep, task_sleep):
        self._bmc(connect_on_insert=False)
        self.client.boot = MagicMock()

        self.assertFalse(self.vm.mount_iso_and_boot(ISO))
        self.client.boot.boot_to_cd.assert_not_called()


if __name__ == '__main__':
    unittest.main()
