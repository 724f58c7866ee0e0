"""Virtual media: status, eject, and guarded insert with connection checks.

Supermicro firmware reports media state inconsistently. A slot may show
``Inserted: false`` while an image is attached and connected, the
EjectMedia action is refused unless ``Inserted`` is true, and a slot can be
"inserted" without actually being connected. The manager here reads every
signal fresh on each call and only treats ``ConnectedVia == "URI"`` as a
bootable mount.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional
from urllib.parse import urlparse

from smcredfish import REDFISH_VIRTUAL_MEDIA
from smcredfish.errors import (
    BMCConnectionError,
    BMCExhaustedRetriesError,
    BMCLicenseError,
    BMCProtocolError,
    BMCValidationError,
)

# The firmware treats this image as "no media"; inserting it ejects.
DUMMY_IMAGE_URL = "http://0.0.0.0/dummy.iso"

INSERT_ACTION = "#VirtualMedia.InsertMedia"
EJECT_ACTION = "#VirtualMedia.EjectMedia"

MAX_INSERT_ATTEMPTS = 3
VERIFY_ATTEMPTS = 5
VERIFY_INTERVAL = 1
SETTLE_DELAY = 2
INSERT_TASK_TIMEOUT = 30

SUPPORTED_SCHEMES = ("http", "https", "nfs", "cifs", "smb")


class ConnectionState(Enum):
    URI = "URI"
    NOT_CONNECTED = "NotConnected"
    OTHER = "Other"

    @classmethod
    def parse(cls, raw):
        if raw == "URI":
            return cls.URI
        if not raw or raw == "NotConnected":
            return cls.NOT_CONNECTED
        return cls.OTHER


def is_inserted(slot):
    """Decide whether a raw VirtualMedia document has media attached.

    Any one signal is enough, because the firmware fills in only some of
    them; the dummy image always means empty.
    """
    image = slot.get("Image")
    if image == DUMMY_IMAGE_URL:
        return False
    connected_via = _connected_via(slot)
    return bool(
        slot.get("Inserted")
        or image
        or (connected_via and connected_via != "NotConnected")
        or slot.get("ImageName")
    )


def _connected_via(slot):
    # Some firmware builds misspell the property
    return slot.get("ConnectedVia", slot.get("ConnecteVia"))


@dataclass
class VirtualMediaDevice:
    device_id: str
    name: str
    inserted: bool
    reported_inserted: bool
    connection_state: ConnectionState
    connected_via: Optional[str] = None
    image: Optional[str] = None
    insert_action_path: Optional[str] = None
    eject_action_path: Optional[str] = None
    media_types: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_redfish(cls, slot):
        actions = slot.get("Actions") or {}
        device_id = slot.get("Id")
        name = slot.get("Name") or device_id
        if slot.get("Name") == "Virtual Removable Media" and device_id:
            name = f"{slot['Name']} ({device_id})"
        connected_via = _connected_via(slot)
        return cls(
            device_id=device_id,
            name=name,
            inserted=is_inserted(slot),
            reported_inserted=bool(slot.get("Inserted")),
            connection_state=ConnectionState.parse(connected_via),
            connected_via=connected_via,
            image=slot.get("Image") or slot.get("ImageName") or None,
            insert_action_path=(actions.get(INSERT_ACTION) or {}).get("target"),
            eject_action_path=(actions.get(EJECT_ACTION) or {}).get("target"),
            media_types=frozenset(slot.get("MediaTypes") or []),
        )

    @property
    def mounted(self):
        """Mounted and bootable: only a URI connection counts."""
        return self.connection_state is ConnectionState.URI

    @property
    def has_media(self):
        return self.inserted or (bool(self.image) and self.image != DUMMY_IMAGE_URL)

    def to_dict(self):
        return {
            "device": self.device_id,
            "name": self.name,
            "inserted": self.inserted,
            "mounted": self.mounted,
            "image": self.image,
            "connected_via": self.connected_via,
            "media_types": sorted(self.media_types),
        }


class VirtualMediaManager:
    def __init__(self, client):
        self.client = client

    @property
    def log(self):
        return self.client.log

    def status(self):
        """List every virtual media device, read fresh from the BMC."""
        resp = self.client.authenticated_request("GET", REDFISH_VIRTUAL_MEDIA)
        if resp.status_code != 200:
            raise BMCProtocolError(
                f"Failed to get virtual media. Status code: {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )
        data = self.client.parse_json(resp)

        devices = []
        # $expand is unreliable on this firmware, so fetch members one by one
        for member in data.get("Members") or []:
            uri = member.get("@odata.id")
            if not uri:
                continue
            member_resp = self.client.authenticated_request("GET", uri)
            if member_resp.status_code != 200:
                self.log.debug(f"Skipping {uri}: HTTP {member_resp.status_code}")
                continue
            device = VirtualMediaDevice.from_redfish(self.client.parse_json(member_resp))
            if device.inserted:
                self.log.debug(f"{device.name} {device.connected_via} {device.image}")
            else:
                self.log.debug(f"{device.name} {device.connected_via or 'NotConnected'}")
            devices.append(device)
        return devices

    def find_device(self, device_id):
        for device in self.status():
            if device.device_id == device_id:
                return device
        return None

    def find_best_device(self):
        """Pick a CD/DVD slot, then a removable slot, then the first one listed."""
        devices = self.status()
        for device in devices:
            if (device.media_types & {"CD", "DVD"}
                    or "cd" in (device.name or "").lower()
                    or "cd" in (device.device_id or "").lower()):
                return device.device_id
        for device in devices:
            if "Removable" in device.media_types or "removable" in (device.name or "").lower():
                return device.device_id
        return devices[0].device_id if devices else None

    def eject_media(self, device=None):
        """Eject media from ``device`` (or the first slot holding media).

        Returns False when nothing is mounted; raises BMCValidationError
        when ``device`` names no slot.
        """
        devices = self.status()
        if device:
            if not any(d.device_id == device for d in devices):
                raise BMCValidationError(f"Virtual media device {device} not found")
            target = next((d for d in devices if d.device_id == device and d.has_media), None)
        else:
            target = next((d for d in devices if d.has_media), None)

        if target is None:
            self.log.info(f"No media to eject{f' for device {device}' if device else ''}")
            return False
        return self._send_eject(target)

    def _insert_action(self, device):
        return (device.insert_action_path
                or f"{REDFISH_VIRTUAL_MEDIA}/{device.device_id}/Actions/VirtualMedia.InsertMedia")

    def _send_eject(self, device):
        self.log.info(f"Ejecting {device.name} ({device.image})...")
        # EjectMedia is refused unless the slot reports Inserted; otherwise
        # "insert" the dummy image with Inserted false.
        if device.eject_action_path and device.reported_inserted:
            path, body, resendable = device.eject_action_path, {}, False
        else:
            # Re-sending the dummy image leaves the slot empty either way
            path, resendable = self._insert_action(device), True
            body = {
                "Image": DUMMY_IMAGE_URL,
                "Inserted": False,
                "TransferMethod": "Stream",
            }

        resp = self.client.authenticated_request("POST", path, body=body, idempotent=resendable)
        if 200 <= resp.status_code < 300:
            self.log.info("Media ejected")
            return True
        self.log.error(f"Failed to eject media: {resp.status_code} - {resp.text}")
        return False

    def _validate_image_url(self, image_url):
        if not image_url or not image_url.strip():
            raise BMCValidationError("Image URL must not be empty")
        scheme = urlparse(image_url).scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise BMCValidationError(
                f"Unsupported image URL {image_url!r}; expected one of: {', '.join(SUPPORTED_SCHEMES)}"
            )
        return scheme

    def _check_license(self):
        status = self.client.license.check_virtual_media_license()
        if status.available is False:
            raise BMCLicenseError(f"Virtual media license required: {status.message}")
        if status.available is None:
            self.log.warning(
                "Unable to verify virtual media license. Mount may fail if license is missing "
                "(HTTP/HTTPS media requires SFT-OOB-LIC or SFT-DCMS-SINGLE)."
            )
        else:
            self.log.debug(f"Virtual media license verified: {', '.join(status.licenses)}")

    def insert_media(self, image_url, device=None):
        """Mount ``image_url`` and confirm the BMC connected it.

        Returns True once the slot reports a URI connection, False when the
        insert went through but the media never connected.

        Raises:
            BMCValidationError: Bad URL, or no such/suitable device
            BMCLicenseError: HTTP(S) media without a virtual media license
            BMCExhaustedRetriesError: Every insert attempt was rejected
        """
        scheme = self._validate_image_url(image_url)
        if scheme in ("http", "https"):
            self._check_license()

        device = device or self.find_best_device()
        if not device:
            raise BMCValidationError("No suitable virtual media device found")

        body = {
            "Image": image_url,
            "Inserted": True,
            "WriteProtected": True,
            "TransferMethod": "Stream",
            "TransferProtocolType": "HTTPS" if scheme == "https" else "HTTP",
        }

        last_error = None
        for attempt in range(1, MAX_INSERT_ATTEMPTS + 1):
            try:
                media = self.find_device(device)
                if media is None:
                    break
                # Always eject first, even if the slot looks empty
                self._send_eject(media)

                self.log.info(f"Inserting media: {image_url} into {device} (attempt {attempt}/{MAX_INSERT_ATTEMPTS})...")
                resp = self.client.authenticated_request("POST", self._insert_action(media), body=body)
            except (BMCConnectionError, BMCProtocolError) as e:
                self.log.error(f"Error inserting media: {e}")
                last_error = e
                time.sleep(SETTLE_DELAY)
                continue

            if resp.status_code == 202:
                self.log.debug("Virtual media insert is async, polling task...")
                task_result = self.client.tasks.wait_for_completion(resp, timeout=INSERT_TASK_TIMEOUT)
                if not task_result.success:
                    self.log.error(f"Insert task did not complete: {task_result.error}")
                    return False
                return self._verify_connected(device, image_url)

            if 200 <= resp.status_code < 300:
                self.log.debug("Virtual media inserted synchronously")
                time.sleep(SETTLE_DELAY)
                return self._verify_connected(device, image_url)

            if resp.status_code == 400 and "already" in resp.text.lower():
                self.log.info("Media already inserted, ejecting and retrying...")
            else:
                self.log.error(f"Failed to insert media: {resp.status_code} - {resp.text}")
            last_error = BMCProtocolError(
                f"HTTP {resp.status_code} - {resp.text}",
                status_code=resp.status_code,
                body=resp.text,
            )
            time.sleep(SETTLE_DELAY)
        else:
            raise BMCExhaustedRetriesError(
                f"Failed to insert virtual media after {MAX_INSERT_ATTEMPTS} attempts: {last_error}",
                attempts=MAX_INSERT_ATTEMPTS,
            ) from last_error

        raise BMCValidationError(f"Virtual media device {device} not found")

    def _verify_connected(self, device, image_url):
        for _ in range(VERIFY_ATTEMPTS):
            time.sleep(VERIFY_INTERVAL)
            media = self.find_device(device)
            if media is None:
                continue
            self.log.debug(f"  Status: ConnectedVia={media.connected_via}, Inserted={media.inserted}")
            if media.mounted:
                self.log.info("Media connected via URI")
                return True

        media = self.find_device(device)
        if media is None or media.image != image_url:
            self.log.error("Failed to verify media mount")
            return False
        if media.connection_state is ConnectionState.NOT_CONNECTED:
            self.log.error("Media mounted but NOT CONNECTED; it will not boot (ConnectedVia must be URI)")
            return False
        self.log.warning(f"Media mounted with status: {media.connected_via}")
        return True

    def unmount_all(self):
        mounted = [d for d in self.status() if d.inserted]
        if not mounted:
            self.log.info("No virtual media currently mounted")
            return True

        success = True
        for media in mounted:
            if self._send_eject(media):
                self.log.info(f"  Ejected: {media.name}")
            else:
                self.log.error(f"  Failed to eject: {media.name}")
                success = False
        return success

    def mount_iso_and_boot(self, image_url, device=None):
        """Insert media and set a one-time CD boot override."""
        if not self.insert_media(image_url, device=device):
            return False
        time.sleep(SETTLE_DELAY)
        try:
            self.client.boot.boot_to_cd()
        except (BMCProtocolError, BMCValidationError) as e:
            self.log.warning(f"ISO mounted but failed to set boot override: {e}")
            return False
        self.log.info("System will boot from virtual media on next restart")
        return True
