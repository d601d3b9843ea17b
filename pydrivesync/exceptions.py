"""Exceptions raised by pydrivesync."""


class DriveSyncError(Exception):
    """Base exception for all pydrivesync errors."""


class DriveConfigError(DriveSyncError):
    """Raised when required configuration is missing or invalid."""


class DriveAPIError(DriveSyncError):
    """Raised when a remote storage request fails."""


class DriveAuthenticationError(DriveAPIError):
    """Raised when the access token is missing, expired or rejected."""


class DrivePermissionError(DriveAPIError):
    """Raised when the token lacks permission for the requested resource."""


class DriveNotFoundError(DriveAPIError):
    """Raised when a remote file or folder does not exist."""


class DriveRateLimitError(DriveAPIError):
    """Raised when the remote service throttles requests."""


class DriveNetworkError(DriveAPIError):
    """Raised on connection failures and timeouts."""


class DriveInvalidResponseError(DriveAPIError):
    """Raised when the remote service returns an unexpected payload."""


class DriveUploadError(DriveAPIError):
    """Raised when uploading a file fails."""


class DriveDownloadError(DriveAPIError):
    """Raised when downloading a file fails."""


class DriveFileNotFoundError(DriveSyncError):
    """Raised when a local file to upload does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Local file not found: {path}")
