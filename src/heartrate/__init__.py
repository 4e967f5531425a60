"""Whoop heart-rate sync.

Periodically pulls one user's heart-rate series from the Whoop metrics API
and stores new samples in Postgres, renewing the web-login session when it
expires.

Subpackages:
    auth/ - Credential extraction, session cache, browser login
    sync/ - Cycle orchestrator and interval scheduler

Core modules:
    base           - Credential / sample / window types and collaborator ABCs
    errors         - Error kinds and their handling policy
    metrics_client - Whoop metrics-service HTTP client
    store          - Postgres watermark store
"""

from src.heartrate.base import (
    Credential,
    HeartRateSample,
    LoginProvider,
    SyncResult,
    SyncWindow,
    WatermarkStore,
    compute_sync_window,
)
from src.heartrate.errors import (
    AuthExpired,
    ConfigMissing,
    CredentialNotFound,
    FetchFailed,
    HeartSyncError,
    LoginFailed,
    MalformedCredential,
    StorageFailure,
)

__all__ = [
    "Credential",
    "HeartRateSample",
    "SyncWindow",
    "SyncResult",
    "LoginProvider",
    "WatermarkStore",
    "compute_sync_window",
    "HeartSyncError",
    "ConfigMissing",
    "LoginFailed",
    "CredentialNotFound",
    "MalformedCredential",
    "AuthExpired",
    "FetchFailed",
    "StorageFailure",
]
