"""BMCClient - Redfish HTTP client with session auth, retry and backoff."""

import base64
import logging
import threading
import time
import weakref
from contextlib import contextmanager
from urllib.parse import urlparse

import requests
import urllib3

from smcredfish import REDFISH_BASE, REDFISH_MANAGERS, __version__
from smcredfish.boot import BootService
from smcredfish.config import ClientConfig
from smcredfish.errors import (
    BMCError,
    BMCConnectionError,
    BMCAuthError,
    BMCProtocolError,
)
from smcredfish.jobs import TaskService
from smcredfish.license import LicenseService
from smcredfish.manager import ManagerService
from smcredfish.network import NetworkService
from smcredfish.power import PowerService
from smcredfish.session import SessionManager
from smcredfish.tasks import TaskPoller
from smcredfish.utility import AccountService, EventLogService
from smcredfish.virtual_media import VirtualMediaManager

__all__ = [
    "BMCClient",
    "BMCError",
    "BMCConnectionError",
    "BMCAuthError",
    "BMCProtocolError",
    "retry_delay",
]


def retry_delay(attempt, base_delay):
    """Backoff before retry number ``attempt`` (1-based): base * int(attempt^1.5)."""
    return base_delay * int(attempt ** 1.5)


def _never_sent(exc):
    """True when a transport error proves the request never reached the BMC."""
    if isinstance(exc, (
        requests.exceptions.ConnectTimeout,
        requests.exceptions.SSLError,
        requests.exceptions.ProxyError,
    )):
        return True
    reason = getattr(exc.args[0], "reason", None) if exc.args else None
    return isinstance(reason, urllib3.exceptions.NewConnectionError)


def _release_session(session, http):
    # Runs from weakref.finalize; must not touch the client.
    try:
        if session.x_auth_token:
            session.delete()
    finally:
        http.close()


class BMCClient:
    """Redfish API client for a single BMC endpoint.

    Authenticates with a Redfish session token, falling back for good to
    HTTP Basic (direct mode) when sessions cannot be created. Transient
    failures are retried with backoff; feature groups (power, boot, tasks,
    virtual media, ...) hang off the client and only use
    ``authenticated_request`` and ``log``.
    """

    REDIRECT_STATUS = {301, 302, 303, 307, 308}
    AUTH_FAILURE_STATUS = {401, 403}
    # Methods safe to resend after a failure that may have reached the BMC
    IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS", "PUT", "DELETE"}
    MAX_REDIRECTS = 5
    USER_AGENT = f"smcredfish/{__version__}"

    def __init__(self, host=None, username=None, password=None, config=None,
                 logger=None, **options):
        if config is None:
            config = ClientConfig(host=host, username=username, password=password, **options)
        self.config = config
        self.log = logger or logging.getLogger("smcredfish")
        self.http = requests.Session()
        if not config.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        self.session = SessionManager(config, self.http, self.log)
        self._lock = threading.RLock()
        self._finalizer = weakref.finalize(self, _release_session, self.session, self.http)

        self.tasks = TaskPoller(self)
        self.jobs = TaskService(self)
        self.license = LicenseService(self)
        self.power = PowerService(self)
        self.boot = BootService(self)
        self.network = NetworkService(self)
        self.virtual_media = VirtualMediaManager(self)
        self.sel = EventLogService(self)
        self.accounts = AccountService(self)
        self.manager = ManagerService(self)

    @classmethod
    @contextmanager
    def connect(cls, host, username, password, **options):
        """Yield a logged-in client; logs out on every exit path."""
        client = cls(host, username, password, **options)
        with client:
            yield client

    def __enter__(self):
        self.login()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    @property
    def host(self):
        return self.config.host

    @property
    def base_url(self):
        return self.config.base_url

    @property
    def direct_mode(self):
        return self.config.direct_mode

    @staticmethod
    def _make_auth_header(username, password):
        cred = f"{username}:{password}"
        encoded = base64.b64encode(cred.encode("utf-8")).decode("utf-8")
        return f"Basic {encoded}"

    def login(self):
        """Open a Redfish session, or switch to direct mode if that fails."""
        with self._lock:
            if self.config.direct_mode:
                self.log.debug("Using direct mode (Basic Auth) for all requests")
                return True
            if self.session.create():
                self.log.debug(f"Logged in to {self.host} using a Redfish session")
                return True
            self._enter_direct_mode("could not create a Redfish session")
            return True

    def logout(self):
        with self._lock:
            if self.session.x_auth_token:
                self.session.delete()
                self.log.debug(f"Logged out from {self.host}")
            return True

    def close(self):
        """Log out and release the transport."""
        self.logout()
        self._finalizer.detach()
        self.http.close()

    def _enter_direct_mode(self, reason):
        if not self.config.direct_mode:
            self.log.warning(f"{self.host}: {reason}, falling back to direct mode (Basic Auth)")
        self.config.direct_mode = True

    def retry_delay(self, attempt):
        return retry_delay(attempt, self.config.retry_delay)

    def authenticated_request(self, method, path, body=None, headers=None,
                              timeout=None, open_timeout=None, idempotent=None):
        """Execute one logical Redfish call.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            path: URL path (e.g. /redfish/v1/Systems/1)
            body: Dict/list sent as JSON, or str/bytes sent as-is
            headers: Additional headers dict
            timeout: Read timeout in seconds (defaults to config.timeout)
            open_timeout: Connect timeout in seconds (defaults to config.timeout)
            idempotent: Whether the call may be resent after a failure that
                might have reached the BMC. Defaults by method.

        Returns:
            requests.Response for any status other than redirects and
            authorization failures.

        Raises:
            BMCConnectionError: Transport failures after all attempts
            BMCAuthError: 401/403 after all attempts
            BMCProtocolError: Redirect loops or malformed requests
        """
        method = method.upper()
        if idempotent is None:
            idempotent = method in self.IDEMPOTENT_METHODS
        max_attempts = max(1, int(self.config.retry_count))

        with self._lock:
            attempt = 1
            redirects = 0
            while True:
                self.log.debug(f"Authenticated request: {method} {path}")
                try:
                    resp = self._send(method, path, body, headers, timeout, open_timeout)
                except (requests.ConnectionError, requests.Timeout) as e:
                    failure = e
                except requests.RequestException as e:
                    raise BMCProtocolError(
                        f"Error during request {method} {path} to {self.host}: {e}"
                    ) from e
                else:
                    if resp.status_code in self.REDIRECT_STATUS and resp.headers.get("Location"):
                        redirects += 1
                        if redirects > self.MAX_REDIRECTS:
                            raise BMCProtocolError(
                                f"Too many redirects for {method} {path} on {self.host}",
                                status_code=resp.status_code,
                            )
                        path = self._redirect_path(resp.headers["Location"])
                        self.log.debug(f"Redirecting to: {path}")
                        continue

                    if resp.status_code in self.AUTH_FAILURE_STATUS:
                        if attempt >= max_attempts:
                            self.log.debug(f"MAX RETRIES REACHED: HTTP {resp.status_code} after {attempt} attempts")
                            raise BMCAuthError(
                                f"Authentication failed for {self.host}: HTTP {resp.status_code} "
                                f"after {attempt} attempts",
                                attempts=attempt,
                            )
                        self._recover_auth(attempt)
                        attempt += 1
                        continue

                    self.log.debug(f"Response status: {resp.status_code}")
                    return resp

                if not idempotent and not _never_sent(failure):
                    raise BMCConnectionError(
                        f"Connection error to {self.host} during {method} {path}; "
                        f"the request may have been applied, not resending: {failure}",
                        attempts=attempt,
                    ) from failure
                if attempt >= max_attempts:
                    self.log.debug(f"MAX RETRIES REACHED: {failure} after {attempt} attempts")
                    raise BMCConnectionError(
                        f"Connection error to {self.host} after {attempt} attempts: {failure}",
                        attempts=attempt,
                    ) from failure

                delay = self.retry_delay(attempt)
                self.log.debug(f"RETRY: {failure} - Attempt {attempt}/{max_attempts}, waiting {delay}s")
                time.sleep(delay)
                self._ensure_session()
                attempt += 1

    def _send(self, method, path, body, headers, timeout, open_timeout):
        req_headers = {
            "User-Agent": self.USER_AGENT,
            "Accept": "application/json",
        }
        if self.config.host_header:
            req_headers["Host"] = self.config.host_header
        if headers:
            req_headers.update(headers)

        if self.config.direct_mode:
            req_headers["Authorization"] = self._make_auth_header(
                self.config.username, self.config.password
            )
        elif self.session.x_auth_token:
            req_headers[SessionManager.TOKEN_HEADER] = self.session.x_auth_token

        kwargs = {}
        if isinstance(body, (dict, list)):
            kwargs["json"] = body
        elif body is not None:
            kwargs["data"] = body

        return self.http.request(
            method,
            f"{self.config.base_url}{path}",
            headers=req_headers,
            timeout=(open_timeout or self.config.timeout, timeout or self.config.timeout),
            verify=self.config.verify_ssl,
            allow_redirects=False,
            **kwargs,
        )

    @staticmethod
    def _redirect_path(location):
        # The firmware answers some paths with absolute trailing-slash redirects.
        if location.startswith("http"):
            return urlparse(location).path
        return location

    def _recover_auth(self, attempt):
        if self.config.direct_mode:
            delay = self.retry_delay(attempt)
            self.log.debug(f"Authentication failed in direct mode, retrying in {delay}s")
            time.sleep(delay)
            return

        self.log.debug("Session rejected, creating a new session...")
        self.session.delete()
        if self.session.create():
            self.log.debug("New session created, retrying request")
            return
        self._enter_direct_mode("session re-creation failed")

    def _ensure_session(self):
        if self.config.direct_mode or self.session.x_auth_token:
            return
        if self.session.create():
            self.log.debug("Created new session after connection error")

    def parse_json(self, resp):
        """Decode a response body, raising BMCProtocolError when it is not JSON."""
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise BMCProtocolError(
                f"Unparseable response from {self.host}: {e}",
                status_code=resp.status_code,
                body=resp.text,
            ) from e

    def _request_json(self, method, path, data=None):
        resp = self.authenticated_request(method, path, body=data)
        status = resp.status_code
        if not 200 <= status < 300:
            raise BMCProtocolError(
                f"HTTP {status} from {self.host}{path}: {resp.text}",
                status_code=status,
                body=resp.text,
            )
        if not resp.content:
            return {"Success": {"Message": f"Action completed with status {status}."}}
        return self.parse_json(resp)

    def get(self, path):
        """GET a Redfish resource."""
        return self._request_json("GET", path)

    def post(self, path, data=None):
        """POST to a Redfish resource."""
        return self._request_json("POST", path, data=data if data is not None else {})

    def patch(self, path, data):
        """PATCH a Redfish resource."""
        return self._request_json("PATCH", path, data=data)

    def delete(self, path):
        """DELETE a Redfish resource."""
        return self._request_json("DELETE", path)

    def wait_for_completion(self, response, timeout=30):
        return self.tasks.wait_for_completion(response, timeout=timeout)

    def redfish_version(self):
        return self.get(REDFISH_BASE).get("RedfishVersion")

    def firmware_version(self):
        resp = self.authenticated_request("GET", f"{REDFISH_MANAGERS}?$select=FirmwareVersion")
        if resp.status_code == 200:
            return self.parse_json(resp).get("FirmwareVersion")
        return self.get(REDFISH_MANAGERS).get("FirmwareVersion")
