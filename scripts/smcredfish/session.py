"""Redfish session lifecycle: login, logout, and token ownership."""

import requests

from smcredfish import REDFISH_SESSIONS


class SessionManager:
    """Owns the X-Auth-Token for one client.

    Holds the client's config and transport rather than the client itself,
    so that a finalizer registered on the client can still log out.
    """

    TOKEN_HEADER = "X-Auth-Token"

    def __init__(self, config, http, logger):
        self.config = config
        self.http = http
        self.log = logger
        self.x_auth_token = None
        self.session_id = None

    def _headers(self, with_token=False):
        headers = {"Accept": "application/json"}
        if with_token:
            headers[self.TOKEN_HEADER] = self.x_auth_token
        if self.config.host_header:
            headers["Host"] = self.config.host_header
        return headers

    def _url(self, path):
        return f"{self.config.base_url}{path}"

    def create(self):
        """Log in. Returns True when a token was issued."""
        self.log.debug(f"Creating Redfish session for {self.config.host}")
        payload = {
            "UserName": self.config.username,
            "Password": self.config.password,
        }
        try:
            resp = self.http.post(
                self._url(REDFISH_SESSIONS),
                json=payload,
                headers=self._headers(),
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            self.log.debug(f"Connection error creating session: {e}")
            return False

        if resp.status_code != 201:
            self.log.debug(f"Failed to create session. Status: {resp.status_code}")
            return False

        self.x_auth_token = resp.headers.get(self.TOKEN_HEADER)
        self.session_id = None
        location = resp.headers.get("Location")
        if location:
            self.session_id = location.rstrip("/").split("/")[-1]
        if not self.session_id:
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                self.session_id = body.get("Id")

        token_preview = f"{self.x_auth_token[:10]}..." if self.x_auth_token else "None"
        self.log.debug(f"Session created. Token: {token_preview}")
        return self.x_auth_token is not None

    def delete(self):
        """Log out. Failures are logged and swallowed; the session may already be gone."""
        if not (self.x_auth_token and self.session_id):
            self.clear()
            return False

        self.log.debug(f"Deleting session {self.session_id}")
        try:
            resp = self.http.delete(
                self._url(f"{REDFISH_SESSIONS}/{self.session_id}"),
                headers=self._headers(with_token=True),
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            self.log.debug(f"Error deleting session: {e}")
            self.clear()
            return False

        self.clear()
        if resp.status_code in (200, 204):
            self.log.debug("Session deleted")
            return True
        self.log.debug(f"Failed to delete session. Status: {resp.status_code}")
        return False

    def clear(self):
        self.x_auth_token = None
        self.session_id = None

    def valid(self):
        """Probe the remote session resource."""
        if not self.x_auth_token:
            return False
        try:
            resp = self.http.get(
                self._url(f"{REDFISH_SESSIONS}/{self.session_id}"),
                headers=self._headers(with_token=True),
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
            )
        except requests.RequestException:
            return False
        return resp.status_code == 200
