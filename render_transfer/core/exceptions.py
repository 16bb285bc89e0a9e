"""Exception hierarchy for asset downloads and render uploads."""

from typing import Any, Dict, Optional


class TransferError(Exception):
    """Base exception for all transfer pipeline errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(TransferError):
    """Raised when store configuration is invalid or missing."""
    pass


class DownloadError(TransferError):
    """Raised when an asset cannot be copied to a local file."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class UploadError(TransferError):
    """Raised when a render output cannot be uploaded."""
    pass


class MultipartUploadError(UploadError):
    """Raised when the store does not open a usable multipart session."""
    pass


class UploadCancelledError(UploadError):
    """Raised inside the part loop when the caller cancels an upload."""
    pass
