"""Error kinds raised by the heart-rate sync.

Every error carries a stable ``kind`` slug that the scheduler logs next to
the message.  ``AuthExpired`` is the only kind handled inside a cycle; all
others end the cycle they occur in (``ConfigMissing`` ends the process).
"""

from __future__ import annotations


class HeartSyncError(Exception):
    """Base class for all sync errors."""

    kind = "sync_error"


class ConfigMissing(HeartSyncError):
    """Required configuration is absent or invalid at startup."""

    kind = "config_missing"

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []


class LoginFailed(HeartSyncError):
    """The interactive login did not produce an authenticated session."""

    kind = "login_failed"


class CredentialNotFound(LoginFailed):
    """Login finished but the access-token cookie was not set."""

    kind = "credential_not_found"


class MalformedCredential(HeartSyncError):
    """The access token is not a decodable JWT or lacks required claims."""

    kind = "malformed_credential"


class AuthExpired(HeartSyncError):
    """The metrics API rejected the bearer token (401/403)."""

    kind = "auth_expired"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FetchFailed(HeartSyncError):
    """The metrics API call failed for a reason other than auth.

    ``status_code`` is None for transport errors and timeouts.
    """

    kind = "fetch_failed"

    def __init__(self, status_code: int | None, body: str = "") -> None:
        if status_code is None:
            message = f"Heart rate API request failed: {body}"
        else:
            message = f"Heart rate API returned {status_code}: {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StorageFailure(HeartSyncError):
    """Reading the watermark or writing samples failed."""

    kind = "storage_failure"
