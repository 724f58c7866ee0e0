"""Exception hierarchy for BMC operations."""


class BMCError(Exception):
    """Base exception for BMC operations."""
    pass


class BMCConnectionError(BMCError):
    """Connection-level failures (timeout, refused, TLS)."""

    def __init__(self, message, attempts=None):
        super().__init__(message)
        self.attempts = attempts


class BMCAuthError(BMCError):
    """Authentication failures (401, 403) that survived re-login."""

    def __init__(self, message, attempts=None):
        super().__init__(message)
        self.attempts = attempts


class BMCProtocolError(BMCError):
    """Unexpected status code or unparseable body. Never retried."""

    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class BMCTimeoutError(BMCError):
    """An operation did not finish within its deadline."""
    pass


class BMCLicenseError(BMCError):
    """A required BMC license is not installed."""
    pass


class BMCValidationError(BMCError):
    """Invalid target, image URL, or unknown device."""
    pass


class BMCExhaustedRetriesError(BMCError):
    """A guarded multi-step operation ran out of attempts."""

    def __init__(self, message, attempts=None):
        super().__init__(message)
        self.attempts = attempts
