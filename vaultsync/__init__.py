"""vaultsync - manual, conflict-aware sync of a local vault with Google Drive."""

from .api import DriveClient
from .auth import TokenManager
from .config import Config, SyncSettings
from .exceptions import (
    BackupError,
    ConfigError,
    DriveAPIError,
    DriveAuthenticationError,
    DriveInvalidResponseError,
    DriveNetworkError,
    DriveNotFoundError,
    DrivePermissionError,
    DriveRateLimitError,
    PullRequiredError,
    SyncCancelledError,
    SyncError,
    SyncInProgressError,
    TokenError,
    TransferError,
    VaultSyncError,
)
from .models import RemoteObject
from .sync import SyncEngine, SyncResult, SyncStatus

__all__ = [
    "DriveClient",
    "TokenManager",
    "Config",
    "SyncSettings",
    "RemoteObject",
    "SyncEngine",
    "SyncResult",
    "SyncStatus",
    "VaultSyncError",
    "ConfigError",
    "TokenError",
    "DriveAPIError",
    "DriveAuthenticationError",
    "DriveInvalidResponseError",
    "DriveNetworkError",
    "DriveNotFoundError",
    "DrivePermissionError",
    "DriveRateLimitError",
    "SyncError",
    "TransferError",
    "BackupError",
    "PullRequiredError",
    "SyncInProgressError",
    "SyncCancelledError",
]
