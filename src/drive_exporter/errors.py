"""Custom exception classes for the Drive exporter.

Every error raised by the exporter derives from ExporterError so the CLI can
report any failure with a single handler. Every error is fatal to the run.
"""

from pathlib import Path
from typing import Optional


class ExporterError(Exception):
    """Base class for all exporter failures."""


class ConfigurationError(ExporterError):
    """Raised when local configuration is unusable.

    This typically occurs when:
    - The client secret file is missing, unreadable or malformed
    - The settings YAML file cannot be parsed
    """

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(message)


class OperationCancelledError(ExporterError):
    """Raised when the shared cancellation context has been cancelled."""

    def __init__(self, message: str = "Operation cancelled", reason: Optional[str] = None) -> None:
        self.reason = reason
        super().__init__(message)


class AuthenticationError(ExporterError):
    """Raised when an authenticated Drive client cannot be produced.

    This typically occurs when:
    - Cached credentials are invalid and cannot be refreshed
    - The Drive API service cannot be built
    """

    def __init__(self, message: str, auth_method: Optional[str] = None) -> None:
        self.auth_method = auth_method
        super().__init__(message)


class AuthorizationError(AuthenticationError):
    """Raised when the interactive authorization-code flow fails.

    This typically occurs when:
    - The local callback listener cannot bind a port
    - The user denied consent in the browser
    - The authorization code was rejected by the token endpoint
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, auth_method="oauth2")


class AuthorizationCancelledError(AuthorizationError, OperationCancelledError):
    """Raised when the flow is cancelled before an authorization code arrives."""

    def __init__(self, message: str = "Authorization cancelled before a code was received") -> None:
        AuthorizationError.__init__(self, message)
        self.reason = "cancelled"


class TokenStoreError(ExporterError):
    """Raised when a cached token cannot be read or written."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(message)


class DriveAccessError(ExporterError):
    """Raised when unable to list a Google Drive folder.

    This typically occurs when:
    - The folder ID is invalid
    - The authenticated user cannot see the folder
    - The resource has been deleted or moved

    To resolve: Ensure the folder is shared with the authenticated account.
    """

    def __init__(self, message: str, resource_id: Optional[str] = None) -> None:
        self.resource_id = resource_id
        super().__init__(message)


class DriveExportError(ExporterError):
    """Raised when unable to export a Google Drive document.

    This typically occurs when:
    - The export format is not supported for the document
    - The document is corrupted or in an unsupported state
    - Permission to download was revoked
    """

    def __init__(
        self, message: str, file_id: Optional[str] = None, mime_type: Optional[str] = None
    ) -> None:
        self.file_id = file_id
        self.mime_type = mime_type
        super().__init__(message)


class FileTooLargeError(DriveExportError):
    """Raised when a document exceeds the Drive export size limit (10MB)."""


class LocalIOError(ExporterError):
    """Raised when the local mirror cannot be written.

    This typically occurs when:
    - The destination directory is not writable
    - The disk is full
    """

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        self.path = path
        super().__init__(message)


class MaxDepthExceededError(ExporterError):
    """Raised when the folder tree is nested deeper than the configured limit."""

    def __init__(self, message: str, folder_id: Optional[str] = None, depth: Optional[int] = None) -> None:
        self.folder_id = folder_id
        self.depth = depth
        super().__init__(message)
