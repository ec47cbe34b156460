"""Exception hierarchy for vaultsync."""


class VaultSyncError(Exception):
    """Base exception for all vaultsync errors."""


class ConfigError(VaultSyncError):
    """Raised when configuration is missing or invalid."""


class TokenError(VaultSyncError):
    """Raised when an access token cannot be acquired or refreshed."""


# =============================================================================
# Remote API errors
# =============================================================================


class DriveAPIError(VaultSyncError):
    """Base exception for remote object store API errors."""


class DriveAuthenticationError(DriveAPIError):
    """Raised when the access token is rejected (401)."""


class DrivePermissionError(DriveAPIError):
    """Raised when access to a resource is forbidden (403)."""


class DriveNotFoundError(DriveAPIError):
    """Raised when a remote object does not exist (404)."""


class DriveRateLimitError(DriveAPIError):
    """Raised when the API rate limit is exceeded (429)."""


class DriveNetworkError(DriveAPIError):
    """Raised on connection-level failures."""


class DriveInvalidResponseError(DriveAPIError):
    """Raised when the API returns a body that cannot be understood."""


# =============================================================================
# Sync errors
# =============================================================================


class SyncError(VaultSyncError):
    """Base exception for reconciliation and transfer failures."""


class TransferError(SyncError):
    """Raised when an upload, download, rename or delete fails mid-batch.

    Transfers that completed before the failure are not rolled back and
    no snapshot is committed.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class BackupError(SyncError):
    """Raised when a conflict backup could not be written.

    The destructive operation that depended on the backup is skipped.
    """

    def __init__(self, message: str, path: str = ""):
        super().__init__(message)
        self.path = path


class PullRequiredError(SyncError):
    """Raised when a push is attempted while the remote is ahead."""


class SyncInProgressError(SyncError):
    """Raised when a sync operation is started while another is running."""


class SyncCancelledError(SyncError):
    """Raised when the user cancels conflict resolution."""
